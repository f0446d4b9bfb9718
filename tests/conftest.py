import os
import sys
import tempfile

BASE_DIR = tempfile.mkdtemp(prefix="tripshare-tests-")

os.environ["TRIPSHARE_DATABASE_PATH"] = os.path.join(BASE_DIR, "tripshare.sqlite3")
os.environ.pop("TRIPSHARE_DATABASE_URL", None)
os.environ["TRIPSHARE_BCRYPT_ROUNDS"] = "10"
os.environ["TRIPSHARE_AUTH_SECRET"] = "test-secret-test-secret-test-secret-0001"
os.environ["TRIPSHARE_LOG_FORMAT"] = "plain"
os.environ["TRIPSHARE_METRICS_ENABLED"] = "false"
os.environ["TRIPSHARE_OTEL_ENABLED"] = "false"
os.environ["TRIPSHARE_SENTRY_DSN"] = ""
os.environ["TRIPSHARE_AUDIT_ENABLED"] = "true"
os.environ["TRIPSHARE_RATE_LIMIT_TRIP_ACCESS"] = "10000 per minute"
os.environ["TRIPSHARE_RATE_LIMIT_LOGIN"] = "10000 per minute"
os.environ["TRIPSHARE_RATE_LIMIT_ADMIN"] = "10000 per minute"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import importlib
import pytest


@pytest.fixture(scope="session")
def app_module():
    return importlib.import_module("tripshare.server")


@pytest.fixture()
def client(app_module):
    app = app_module.app
    app.config.update(TESTING=True)
    return app.test_client()


@pytest.fixture()
def services(app_module):
    return app_module.app.extensions["services"]


@pytest.fixture()
def clean_db(app_module):
    from tripshare.models import TripshareBase, get_engine

    engine = get_engine()
    with engine.begin() as conn:
        for table in reversed(TripshareBase.metadata.sorted_tables):
            conn.execute(table.delete())
    yield engine


@pytest.fixture()
def admin_user(services, clean_db):
    return services.users.create_user(
        email="admin@example.com", password="correct-horse", display_name="Admin", is_admin=True
    )


@pytest.fixture()
def admin_headers(admin_user):
    from tripshare.auth import issue_session_token

    token = issue_session_token(admin_user)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def viewer_headers(services, clean_db):
    from tripshare.auth import issue_session_token

    user = services.users.create_user(email="viewer@example.com", password="viewer-pass", is_admin=False)
    token = issue_session_token(user)["access_token"]
    return {"Authorization": f"Bearer {token}"}
