# backend/settings/dev.py
"""
PATH: backend/settings/dev.py

LOCAL STATION SETTINGS
- cashier UI served by the local dev server
- persistence API over plain http is allowed
- checkout logs at DEBUG unless POS_LOG_LEVEL says otherwise
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, TESTING, env

DEBUG = True

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=["http://localhost:3000"])
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=["http://localhost:3000"])

if not TESTING:
    LOGGING["loggers"]["checkout"]["level"] = env("POS_LOG_LEVEL", default="DEBUG").strip().upper()
