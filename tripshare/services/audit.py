from __future__ import annotations

import json
import logging
import os
import time

from flask import has_request_context, request
from sqlalchemy.exc import OperationalError

from ..config import parse_bool
from ..models import get_engine
from ..models.audit import AccessEvent, AuditEvent
from ..utils.request import _get_request_ip

logger = logging.getLogger("tripshare.audit")

AUDIT_ENABLED = parse_bool(os.environ.get("TRIPSHARE_AUDIT_ENABLED", "true"))
try:
    AUDIT_RETENTION_DAYS = int(os.environ.get("TRIPSHARE_AUDIT_RETENTION_DAYS", "180"))
except (TypeError, ValueError):
    AUDIT_RETENTION_DAYS = 180

_last_retention_sweep_at: float = 0.0


def _request_meta() -> tuple[str | None, str | None]:
    if not has_request_context():
        return None, None
    return _get_request_ip(), request.headers.get("User-Agent")


def _maybe_apply_retention(conn) -> None:
    global _last_retention_sweep_at

    if AUDIT_RETENTION_DAYS <= 0:
        return

    now = time.time()
    if now - _last_retention_sweep_at < 3600:
        return

    cutoff = int(now - (AUDIT_RETENTION_DAYS * 86400))
    try:
        conn.execute(AccessEvent.__table__.delete().where(AccessEvent.__table__.c.created_at < cutoff))
    finally:
        _last_retention_sweep_at = now


def _insert_with_retry(table, values: dict, label: str, engine=None) -> None:
    engine = engine or get_engine()
    for attempt in range(3):
        try:
            with engine.begin() as conn:
                if table is AccessEvent.__table__:
                    _maybe_apply_retention(conn)
                conn.execute(table.insert(), values)
            return
        except OperationalError as exc:
            if "locked" not in str(exc).lower() or attempt == 2:
                logger.warning("%s logging failed: %s", label, exc)
                return
            time.sleep(0.05 * (attempt + 1))
        except Exception as exc:
            logger.warning("%s logging failed: %s", label, exc)
            return


def _log_access_event(trip_slug: str | None, verdict: str, transport: str) -> None:
    """
    Records a denied trip access with its internal verdict. The verdict is
    kept server-side only; clients always see the same 401.
    """
    if not AUDIT_ENABLED:
        return
    ip, user_agent = _request_meta()
    _insert_with_retry(
        AccessEvent.__table__,
        {
            "trip_slug": (trip_slug or "")[:200] or None,
            "verdict": verdict,
            "transport": transport,
            "ip": ip,
            "user_agent": user_agent,
            "created_at": int(time.time()),
        },
        "Access event",
    )


def _log_audit_event(
    action: str, actor_id: str | None = None, target: str | None = None, detail: dict | None = None
) -> None:
    if not AUDIT_ENABLED:
        return
    ip, _user_agent = _request_meta()
    _insert_with_retry(
        AuditEvent.__table__,
        {
            "action": action,
            "actor_id": actor_id,
            "target": target,
            "detail": json.dumps(detail, separators=(",", ":")) if detail else None,
            "ip": ip,
            "created_at": int(time.time()),
        },
        "Audit event",
    )
