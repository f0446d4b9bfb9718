from __future__ import annotations


def create_app():
    # Importing the server builds the app; keep that off the package import
    # path so the admin CLI and the services load without it.
    from .server import app

    return app
