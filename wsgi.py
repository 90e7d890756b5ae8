"""
WSGI entry point for the forms engine (WSGI servers and the Flask CLI).

Usage:
    flask --app wsgi db upgrade    # apply migrations/versions; APP_ENV selects the config
"""

from app import create_app

app = create_app()
