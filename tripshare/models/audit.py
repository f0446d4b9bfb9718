from __future__ import annotations

from sqlalchemy import Column, Index, Integer, Text

from . import TripshareBase


class AccessEvent(TripshareBase):
    __tablename__ = "access_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_slug = Column(Text)
    verdict = Column(Text, nullable=False)
    transport = Column(Text, nullable=False)
    ip = Column(Text)
    user_agent = Column(Text)
    created_at = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_access_events_trip_slug", "trip_slug"),
        Index("idx_access_events_created_at", "created_at"),
        Index("idx_access_events_verdict", "verdict"),
    )


class AuditEvent(TripshareBase):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(Text, nullable=False)
    actor_id = Column(Text)
    target = Column(Text)
    detail = Column(Text)
    ip = Column(Text)
    created_at = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
        Index("idx_audit_events_action", "action"),
    )
