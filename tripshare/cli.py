"""
Admin command line for the trip sharing API.

    tripshare-admin init-db
    tripshare-admin create-admin
    tripshare-admin set-password admin@example.com
    tripshare-admin seed
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
import time

from .models import init_db
from .services.container import build_services
from .services.trips import TripConflictError
from .services.users import UserExistsError, _password_rules_error
from .utils.validation import is_valid_email

SEED_ADMIN_EMAIL = os.environ.get("TRIPSHARE_SEED_ADMIN_EMAIL", "admin@example.com")
SEED_ADMIN_NAME = os.environ.get("TRIPSHARE_SEED_ADMIN_NAME", "Admin User")
SEED_ADMIN_PASSWORD = os.environ.get("TRIPSHARE_SEED_ADMIN_PASSWORD", "changeme123")

DAY = 86400

SEED_TRIPS = [
    {
        "slug": "tokyo-spring",
        "title": "Tokyo in Spring",
        "description": "Cherry blossoms along the Meguro river",
        "is_public": True,
        "photos": [
            ("seed-tokyo-1", 35.6339, 139.7081, 12, "Meguro river at dusk"),
            ("seed-tokyo-2", 35.7148, 139.7967, 11, "Senso-ji before the crowds"),
        ],
    },
    {
        "slug": "paris-2024",
        "title": "Paris 2024",
        "description": "A long weekend in Paris",
        "is_public": False,
        "photos": [
            ("seed-paris-1", 48.8584, 2.2945, 30, "Tour Eiffel from the Champ de Mars"),
            ("seed-paris-2", 48.8606, 2.3376, 29, "Louvre courtyard"),
        ],
    },
]


def _prompt_password() -> str:
    while True:
        password = getpass.getpass("Password: ")
        error = _password_rules_error(password)
        if error:
            print(f"Error: {error}")
            continue
        if password != getpass.getpass("Confirm password: "):
            print("Error: passwords don't match, try again")
            continue
        return password


def cmd_init_db(_args) -> int:
    init_db()
    print("Database schema is up to date")
    return 0


def cmd_create_admin(args) -> int:
    services = build_services()
    email = (args.email or input("Admin email: ")).strip().lower()
    if not is_valid_email(email):
        print("Error: invalid email format")
        return 1
    if services.users.find_by_email(email):
        print(f"Error: user with email '{email}' already exists")
        return 1

    display_name = args.name if args.name is not None else input("Display name (optional): ").strip()
    password = _prompt_password()
    try:
        user = services.users.create_user(
            email=email, password=password, display_name=display_name or None, is_admin=True
        )
    except (ValueError, UserExistsError) as exc:
        print(f"Error: {exc}")
        return 1

    print(f"Admin user ready: {user['email']} (id {user['id']})")
    return 0


def cmd_set_password(args) -> int:
    services = build_services()
    email = (args.email or input("Email: ")).strip().lower()
    if not services.users.find_by_email(email):
        print(f"Error: no user with email '{email}'")
        return 1
    password = _prompt_password()
    services.users.set_password(email, password)
    print(f"Password updated for {email}")
    return 0


def cmd_seed(_args) -> int:
    init_db()
    services = build_services()

    if services.users.find_by_email(SEED_ADMIN_EMAIL):
        print(f"Admin {SEED_ADMIN_EMAIL} already exists")
    else:
        services.users.create_user(
            email=SEED_ADMIN_EMAIL,
            password=SEED_ADMIN_PASSWORD,
            display_name=SEED_ADMIN_NAME,
            is_admin=True,
        )
        print(f"Created admin {SEED_ADMIN_EMAIL}")

    now = int(time.time())
    for seed in SEED_TRIPS:
        token = None
        token_hash = None
        if not seed["is_public"]:
            token = services.hasher.generate_token()
            token_hash = services.hasher.hash(token)
        try:
            trip = services.trips.create_trip(
                slug=seed["slug"],
                title=seed["title"],
                description=seed["description"],
                is_public=seed["is_public"],
                access_token_hash=token_hash,
            )
        except TripConflictError:
            print(f"Trip {seed['slug']} already exists, skipping")
            continue

        for key, lat, lon, days_ago, caption in seed["photos"]:
            services.trips.add_photo(
                trip.id,
                storage_key=key,
                url=f"https://images.example.com/{key}.jpg",
                thumbnail_url=f"https://images.example.com/w_400/{key}.jpg",
                latitude=lat,
                longitude=lon,
                taken_at=now - days_ago * DAY,
                caption=caption,
            )

        if token:
            print(f"Created private trip {trip.slug} (id {trip.id}); access token: {token}")
        else:
            print(f"Created public trip {trip.slug} (id {trip.id})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tripshare-admin", description="Trip sharing admin tasks")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables").set_defaults(func=cmd_init_db)

    create = sub.add_parser("create-admin", help="create an admin user")
    create.add_argument("--email")
    create.add_argument("--name")
    create.set_defaults(func=cmd_create_admin)

    set_password = sub.add_parser("set-password", help="reset a user's password")
    set_password.add_argument("email", nargs="?")
    set_password.set_defaults(func=cmd_set_password)

    sub.add_parser("seed", help="load demo data").set_defaults(func=cmd_seed)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nCancelled")
        return 1


if __name__ == "__main__":
    sys.exit(main())
