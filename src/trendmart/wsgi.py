"""WSGI entry point: gunicorn "trendmart.wsgi:app" """
import atexit

from trendmart.app import create_app
from trendmart.db import Database
from trendmart.routes.utils import CONTAINER_KEY

app = create_app()
atexit.register(app.extensions[CONTAINER_KEY].get(Database).dispose)
