"""
asgi.py -- ASGI entry point for SessionGuard.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8000 --workers 4

Each worker process builds its own auth stack in the lifespan. Workers share
state only through the user and session databases, so any number of them can
serve requests for the same user.
"""

from api.main import app

__all__ = ["app"]
