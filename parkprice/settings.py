"""Base Django settings for the parking pricing service."""
from __future__ import annotations

import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def env(name: str, default: str | None = None) -> str:
    """Fetch environment variables while allowing explicit defaults."""

    value = os.environ.get(name, default)
    if value is None:
        raise ImproperlyConfigured(f"Environment variable {name} is required")
    return value


def env_bool(name: str, default: bool) -> bool:
    return env(name, "1" if default else "0").strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = env("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "parkprice.api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "parkprice.urls"
WSGI_APPLICATION = "parkprice.wsgi.application"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Parking events and groups live in the store configured by DATABASE_URL
# (see parkprice.core.models); Django itself only needs a local database.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": env("DJANGO_DB_NAME", str(BASE_DIR / "django.sqlite3")),
    }
}

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "UNAUTHENTICATED_USER": None,
}

# -- Pricing pipeline ---------------------------------------------------------
PARKING_BASE_PRICE = env("PARKING_BASE_PRICE", "10")
PARKING_CLUSTER_TOLERANCE = float(env("PARKING_CLUSTER_TOLERANCE", "0.01"))
PARKING_CLUSTER_TIE_BREAK = env("PARKING_CLUSTER_TIE_BREAK", "first_match")
PARKING_PRUNE_STALE_GROUPS = env_bool("PARKING_PRUNE_STALE_GROUPS", True)
PARKING_TIME_ZONE = env("PARKING_TIME_ZONE", "UTC")
PARKING_TIME_ZONE_LOOKUP = env_bool("PARKING_TIME_ZONE_LOOKUP", True)

SIGNAL_CACHE_TTL = float(env("SIGNAL_CACHE_TTL", "300"))
WEATHER_FAILURE_POLICY = env("WEATHER_FAILURE_POLICY", "raise")
TRAFFIC_FAILURE_POLICY = env("TRAFFIC_FAILURE_POLICY", "fallback")

OPENWEATHER_API_KEY = env("OPENWEATHER_API_KEY", "")
HERE_API_KEY = env("HERE_API_KEY", "")
PROVIDER_TIMEOUT = float(env("PROVIDER_TIMEOUT", "5"))
PROVIDER_RETRIES = int(env("PROVIDER_RETRIES", "0"))
PROVIDER_BACKOFF_FACTOR = float(env("PROVIDER_BACKOFF_FACTOR", "0.3"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "parkprice": {
            "handlers": ["console"],
            "level": env("PARKPRICE_LOG_LEVEL", "INFO"),
        },
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True
