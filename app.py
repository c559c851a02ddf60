"""Gunicorn entry point: ``gunicorn app:app``."""

from compress_webhook import create_app

app = create_app()
