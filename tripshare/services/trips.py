from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError

from ..models import get_engine
from ..models.trips import Photo, Trip
from ..utils.validation import is_valid_slug, looks_like_uuid

logger = logging.getLogger("tripshare.trips")

_TRIPS = Trip.__table__
_PHOTOS = Photo.__table__


class TripConflictError(ValueError):
    pass


@dataclass(frozen=True)
class TripRecord:
    id: str
    slug: str
    title: str
    description: str | None
    cover_photo_url: str | None
    is_public: bool
    access_token_hash: str | None
    created_at: int
    updated_at: int

    @classmethod
    def from_row(cls, row) -> "TripRecord":
        return cls(
            id=row["id"],
            slug=row["slug"],
            title=row["title"],
            description=row["description"],
            cover_photo_url=row["cover_photo_url"],
            is_public=bool(row["is_public"]),
            access_token_hash=row["access_token_hash"],
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
        )


class TripRepository:
    """Reads and writes trip rows. Lookups never raise for unknown keys."""

    def __init__(self, engine=None) -> None:
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def find_by_slug(self, slug: str | None) -> TripRecord | None:
        # A malformed slug is reported exactly like an unknown one
        if not is_valid_slug(slug):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(select(_TRIPS).where(_TRIPS.c.slug == slug)).mappings().first()
        return TripRecord.from_row(row) if row else None

    def find_by_id(self, trip_id: str | None) -> TripRecord | None:
        if not looks_like_uuid(trip_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(select(_TRIPS).where(_TRIPS.c.id == trip_id.lower())).mappings().first()
        return TripRecord.from_row(row) if row else None

    def list_photos(self, trip_id: str) -> list[dict]:
        with self.engine.connect() as conn:
            rows = (
                conn.execute(
                    select(_PHOTOS)
                    .where(_PHOTOS.c.trip_id == trip_id)
                    .order_by(_PHOTOS.c.taken_at.asc(), _PHOTOS.c.created_at.asc())
                )
                .mappings()
                .all()
            )
        return [dict(row) for row in rows]

    def list_trips(self) -> list[dict]:
        stats = (
            select(
                _PHOTOS.c.trip_id,
                func.count().label("photo_count"),
                func.min(_PHOTOS.c.taken_at).label("min_taken_at"),
                func.max(_PHOTOS.c.taken_at).label("max_taken_at"),
            )
            .group_by(_PHOTOS.c.trip_id)
            .subquery()
        )
        query = (
            select(_TRIPS, stats.c.photo_count, stats.c.min_taken_at, stats.c.max_taken_at)
            .select_from(_TRIPS.outerjoin(stats, stats.c.trip_id == _TRIPS.c.id))
            .order_by(_TRIPS.c.created_at.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        result = []
        for row in rows:
            trip = TripRecord.from_row(row)
            result.append(
                _trip_summary(
                    trip,
                    photo_count=int(row["photo_count"] or 0),
                    start=row["min_taken_at"],
                    end=row["max_taken_at"],
                )
            )
        return result

    def create_trip(
        self,
        *,
        slug: str,
        title: str,
        description: str | None = None,
        cover_photo_url: str | None = None,
        is_public: bool = True,
        access_token_hash: str | None = None,
    ) -> TripRecord:
        now = int(time.time())
        values = {
            "id": str(uuid.uuid4()),
            "slug": slug,
            "title": title.strip(),
            "description": description or None,
            "cover_photo_url": cover_photo_url or None,
            "is_public": bool(is_public),
            "access_token_hash": None if is_public else access_token_hash,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(_TRIPS.insert(), values)
        except IntegrityError as exc:
            raise TripConflictError(f"Trip slug already exists: {slug}") from exc
        return TripRecord.from_row(values)

    def update_trip(self, trip_id: str, **fields) -> TripRecord | None:
        """
        Updates trip metadata. Only slug, title, description and
        cover_photo_url are accepted here; visibility and the stored hash
        change through `update_protection` and `make_private`.
        """
        unknown = set(fields) - {"slug", "title", "description", "cover_photo_url"}
        if unknown:
            raise ValueError(f"Unsupported trip fields: {sorted(unknown)}")
        if not looks_like_uuid(trip_id):
            return None
        trip_id = trip_id.lower()

        values = dict(fields)
        if "title" in values:
            values["title"] = values["title"].strip()
        if "description" in values:
            values["description"] = (values["description"] or "").strip() or None
        if "cover_photo_url" in values:
            values["cover_photo_url"] = values["cover_photo_url"] or None
        values["updated_at"] = int(time.time())

        try:
            with self.engine.begin() as conn:
                result = conn.execute(update(_TRIPS).where(_TRIPS.c.id == trip_id).values(**values))
                if result.rowcount == 0:
                    return None
                row = conn.execute(select(_TRIPS).where(_TRIPS.c.id == trip_id)).mappings().first()
        except IntegrityError as exc:
            raise TripConflictError(f"Trip slug already exists: {fields.get('slug')}") from exc
        return TripRecord.from_row(row) if row else None

    def update_protection(self, trip_id: str, *, is_public: bool, token_hash: str | None) -> bool:
        """
        Sets visibility and stored hash in one UPDATE so readers never see a
        private trip paired with a stale hash. Public trips never keep a hash.
        """
        if not looks_like_uuid(trip_id):
            return False
        values = {
            "is_public": bool(is_public),
            "access_token_hash": None if is_public else token_hash,
            "updated_at": int(time.time()),
        }
        with self.engine.begin() as conn:
            result = conn.execute(update(_TRIPS).where(_TRIPS.c.id == trip_id.lower()).values(**values))
        return result.rowcount > 0

    def make_private(self, trip_id: str, *, fallback_hash: str | None) -> TripRecord | None:
        """
        Marks a trip private while keeping any hash it already stores;
        `fallback_hash` only fills an empty slot. The CASE runs inside the
        UPDATE, so a hash written concurrently is never overwritten. Returns
        the row as committed, or None for an unknown trip.
        """
        if not looks_like_uuid(trip_id):
            return None
        trip_id = trip_id.lower()
        stored_hash = case(
            (_TRIPS.c.access_token_hash.is_(None), fallback_hash),
            else_=_TRIPS.c.access_token_hash,
        )
        with self.engine.begin() as conn:
            result = conn.execute(
                update(_TRIPS)
                .where(_TRIPS.c.id == trip_id)
                .values(is_public=False, access_token_hash=stored_hash, updated_at=int(time.time()))
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(select(_TRIPS).where(_TRIPS.c.id == trip_id)).mappings().first()
        return TripRecord.from_row(row) if row else None

    def add_photo(
        self,
        trip_id: str,
        *,
        storage_key: str,
        url: str,
        thumbnail_url: str,
        taken_at: int,
        latitude: float | None = None,
        longitude: float | None = None,
        caption: str | None = None,
        album: str | None = None,
        rotation: int = 0,
    ) -> dict:
        values = {
            "id": str(uuid.uuid4()),
            "trip_id": trip_id,
            "storage_key": storage_key,
            "url": url,
            "thumbnail_url": thumbnail_url,
            "latitude": latitude,
            "longitude": longitude,
            "taken_at": int(taken_at),
            "caption": caption,
            "album": album,
            "rotation": int(rotation),
            "created_at": int(time.time()),
        }
        with self.engine.begin() as conn:
            conn.execute(_PHOTOS.insert(), values)
        return values


def _iso(epoch: int | None) -> str | None:
    if epoch is None:
        return None
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(int(epoch)))


def _trip_summary(trip: TripRecord, *, photo_count: int, start: int | None, end: int | None) -> dict:
    return {
        "id": trip.id,
        "slug": trip.slug,
        "title": trip.title,
        "description": trip.description,
        "coverPhotoUrl": trip.cover_photo_url,
        "isPublic": trip.is_public,
        "createdAt": _iso(trip.created_at),
        "updatedAt": _iso(trip.updated_at),
        "photoCount": photo_count,
        "dateRange": {
            "start": _iso(start if start is not None else trip.created_at),
            "end": _iso(end if end is not None else trip.created_at),
        },
    }


def _photo_payload(photo: dict) -> dict:
    return {
        "id": photo["id"],
        "storageKey": photo["storage_key"],
        "url": photo["url"],
        "thumbnailUrl": photo["thumbnail_url"],
        "latitude": photo.get("latitude"),
        "longitude": photo.get("longitude"),
        "takenAt": _iso(photo["taken_at"]),
        "caption": photo.get("caption"),
        "album": photo.get("album"),
        "rotation": int(photo.get("rotation") or 0),
        "createdAt": _iso(photo.get("created_at")),
    }


def build_trip_payload(trip: TripRecord, photos: list[dict]) -> dict:
    """Full trip response with nested photos. The stored token hash is never included."""
    start = photos[0]["taken_at"] if photos else None
    end = photos[-1]["taken_at"] if photos else None
    payload = _trip_summary(trip, photo_count=len(photos), start=start, end=end)
    payload["photos"] = [_photo_payload(photo) for photo in photos]
    return payload
