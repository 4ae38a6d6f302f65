"""Production settings: values from the environment, PostgreSQL required."""
import os

from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = os.environ["DJANGO_SECRET_KEY"]

if "POSTGRES_DB" not in os.environ:
    raise RuntimeError("POSTGRES_DB must be set in production")

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
