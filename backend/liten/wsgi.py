"""WSGI entry point: ``gunicorn -c gunicorn.conf.py liten.wsgi:app``."""

from __future__ import annotations

from liten.factory import create_app

app = create_app()
