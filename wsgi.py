"""WSGI entrypoint.

Exports `application` compatible with `gunicorn wsgi:application`.
"""
from dualtodo import create_app

app = create_app()

# Alias for gunicorn/uwsgi
application = app
