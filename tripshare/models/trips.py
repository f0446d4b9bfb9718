from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Column, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from . import TripshareBase


class Trip(TripshareBase):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True)
    slug = Column(Text, nullable=False, unique=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    cover_photo_url = Column(Text)
    is_public = Column(Boolean, nullable=False, default=True)
    # null while public, or private with no token configured yet
    access_token_hash = Column(Text)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)

    __table_args__ = (Index("idx_trips_created_at", "created_at"),)


class Photo(TripshareBase):
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True)
    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    storage_key = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=False)
    latitude = Column(Float)
    longitude = Column(Float)
    taken_at = Column(Integer, nullable=False)
    caption = Column(Text)
    album = Column(Text)
    rotation = Column(Integer, nullable=False, default=0)
    created_at = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_photos_trip_id", "trip_id"),
        Index("idx_photos_taken_at", "taken_at"),
    )


class UserProfile(TripshareBase):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text)
    display_name = Column(Text)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)


class TripAccess(TripshareBase):
    """Per-user grant on one trip. Admins never appear here; they see every trip."""

    __tablename__ = "trip_access"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False)
    trip_id = Column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    role = Column(Text, nullable=False)
    granted_at = Column(Integer, nullable=False)
    granted_by_user_id = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"))

    __table_args__ = (
        UniqueConstraint("user_id", "trip_id", name="uq_trip_access_user_trip"),
        CheckConstraint("role IN ('editor', 'viewer')", name="ck_trip_access_role"),
        Index("idx_trip_access_user", "user_id"),
        Index("idx_trip_access_trip", "trip_id"),
    )
