from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..config import HasherConfig
from .access import AccessGate
from .audit import _log_access_event
from .token_hasher import TokenHasher
from .trip_access import TripAccessRepository
from .trips import TripRepository
from .users import UserService


@dataclass
class ServiceContainer:
    hasher: TokenHasher
    trips: TripRepository
    users: UserService
    gate: AccessGate
    access: TripAccessRepository


def build_services(hasher_config: HasherConfig | None = None, engine=None) -> ServiceContainer:
    hasher = TokenHasher(hasher_config or HasherConfig.from_env())
    trips = TripRepository(engine)
    access = TripAccessRepository(engine)
    return ServiceContainer(
        hasher=hasher,
        trips=trips,
        users=UserService(hasher, engine),
        gate=AccessGate(trips, hasher, record_event=_log_access_event, grants=access),
        access=access,
    )


def init_services(app, services: ServiceContainer | None = None, **kwargs) -> ServiceContainer:
    container = services or build_services(**kwargs)
    app.extensions["services"] = container
    return container


def get_services() -> ServiceContainer:
    container = current_app.extensions.get("services")
    if container is None:
        container = build_services()
        current_app.extensions["services"] = container
    return container
