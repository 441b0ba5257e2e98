"""
asgi.py -- ASGI entry point for the job board API.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8000 --workers 1

Keep a single worker: the token revocation registry lives in process memory,
so a token logged out on one worker would still be accepted by another.
"""

from api.main import app

__all__ = ["app"]
