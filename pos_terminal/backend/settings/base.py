"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod)

Operational maturity:
- Throttling
- Persistence API endpoints (remote sale/order storage)
- Offline pending-sales queue backend
- Cash drawer / receipt printer side channels
- Sentry (optional): error visibility in production
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv or "pytest" in sys.modules

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "America/Bogota"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:3000"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:3000"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    CACHE_URL=(str, "dbcache://pos_cache"),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    # Persistence API (remote)
    POS_API_BASE_URL=(str, "http://localhost:8001/api"),
    POS_API_TOKEN=(str, ""),
    POS_API_TIMEOUT=(float, 15.0),
    POS_DIRECT_SALE_ENDPOINT=(str, "/pos/sales"),
    POS_DEFERRED_ORDER_ENDPOINT=(str, "/separated-orders"),
    POS_NEXT_NUMBER_ENDPOINT=(str, "/pos/sales/next-number"),
    POS_HEALTH_ENDPOINT=(str, "/health"),
    # Station identity
    POS_STATION_ID=(str, ""),
    POS_NAME=(str, ""),
    # Offline queue
    POS_PENDING_QUEUE_BACKEND=(str, "database"),
    POS_PENDING_QUEUE_KEY=(str, "pos_pending_sales_v1"),
    POS_PENDING_QUEUE_FILE=(str, str(BASE_DIR / "var" / "pending_sales.json")),
    POS_FINALIZE_LOCK_SECONDS=(int, 120),
    # Sale rules
    POS_DEFERRED_DUE_MONTHS=(int, 2),
    CURRENCY_DECIMAL_PLACES=(int, 0),
    MONEY_THOUSANDS_SEPARATOR=(str, ","),
    # Peripherals
    CASH_DRAWER_DEVICE=(str, ""),
    CASH_DRAWER_AUTO_OPEN=(bool, False),
    POS_RECEIPT_PRINTER=(str, ""),
    # Logging
    POS_LOG_LEVEL=(str, "INFO"),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "checkout.apps.CheckoutConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backend.urls"
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE"),
        "user": env("THROTTLE_USER_RATE"),
    },
}

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(hours=12),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
}

# -----------------------------------------
# DATABASE / CACHE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# connectivity flag + finalize/replay locks must be visible to every process
# (web workers and the watch_connectivity daemon). Default is the database
# cache: run `manage.py createcachetable` once after migrate.
CACHES = {
    "default": env.cache("CACHE_URL"),
}

# -----------------------------------------
# PERSISTENCE API
# -----------------------------------------
POS_API_BASE_URL = (env("POS_API_BASE_URL") or "").strip().rstrip("/")
POS_API_TOKEN = (env("POS_API_TOKEN") or "").strip()
POS_API_TIMEOUT = env.float("POS_API_TIMEOUT")

POS_DIRECT_SALE_ENDPOINT = env("POS_DIRECT_SALE_ENDPOINT")
POS_DEFERRED_ORDER_ENDPOINT = env("POS_DEFERRED_ORDER_ENDPOINT")
POS_NEXT_NUMBER_ENDPOINT = env("POS_NEXT_NUMBER_ENDPOINT")
POS_HEALTH_ENDPOINT = env("POS_HEALTH_ENDPOINT")

# -----------------------------------------
# STATION
# -----------------------------------------
POS_STATION_ID = (env("POS_STATION_ID") or "").strip()
POS_NAME = (env("POS_NAME") or "").strip()

# -----------------------------------------
# OFFLINE QUEUE
# -----------------------------------------
POS_PENDING_QUEUE_BACKEND = (env("POS_PENDING_QUEUE_BACKEND") or "database").strip().lower()
POS_PENDING_QUEUE_KEY = (env("POS_PENDING_QUEUE_KEY") or "pos_pending_sales_v1").strip()
POS_PENDING_QUEUE_FILE = env("POS_PENDING_QUEUE_FILE")
POS_FINALIZE_LOCK_SECONDS = env.int("POS_FINALIZE_LOCK_SECONDS")

# -----------------------------------------
# SALE RULES / MONEY
# -----------------------------------------
POS_DEFERRED_DUE_MONTHS = env.int("POS_DEFERRED_DUE_MONTHS")
CURRENCY_DECIMAL_PLACES = env.int("CURRENCY_DECIMAL_PLACES")
MONEY_THOUSANDS_SEPARATOR = env("MONEY_THOUSANDS_SEPARATOR")

# -----------------------------------------
# PERIPHERALS
# -----------------------------------------
CASH_DRAWER_DEVICE = (env("CASH_DRAWER_DEVICE") or "").strip()
CASH_DRAWER_AUTO_OPEN = env.bool("CASH_DRAWER_AUTO_OPEN")
POS_RECEIPT_PRINTER = (env("POS_RECEIPT_PRINTER") or "").strip()

# -----------------------------------------
# LOGGING
# -----------------------------------------
POS_LOG_LEVEL = (env("POS_LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "checkout": {
            "handlers": ["console"],
            "level": "CRITICAL" if TESTING else POS_LOG_LEVEL,
            "propagate": False,
        },
    },
}

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = float(env("SENTRY_TRACES_SAMPLE_RATE"))
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = [*default_headers, "idempotency-key"]

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "POS Terminal API",
    "DESCRIPTION": "Checkout, offline pending-sales queue and payment methods for a POS station",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
