from pathlib import Path
import os
from dotenv import load_dotenv
from django.core.exceptions import ImproperlyConfigured

# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def env(name: str, default=None, *, required: bool = False):
    val = os.getenv(name, default)
    if required and (val is None or (isinstance(val, str) and val.strip() == "")):
        raise ImproperlyConfigured(f"Missing required environment variable: {name}")
    return val

def env_bool(name: str, default: bool = False) -> bool:
    return str(os.getenv(name, str(default))).lower() in {"1", "true", "yes", "on"}

# -----------------------------------------------------
# Paths & basics
# -----------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DEBUG = env_bool("DEBUG", False)

# In production (DEBUG=False) you must set a strong secret in .env
SECRET_KEY = env("DJANGO_SECRET_KEY", "dev-only-secret-key-change-me", required=not DEBUG)

# Keep hosts explicit by default
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver").split(",") if h.strip()]

# -----------------------------------------------------
# Applications
# -----------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",

    # Third-party
    "rest_framework",

    # Local
    "enhancer",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "visionboost.urls"

WSGI_APPLICATION = "visionboost.wsgi.application"

# -----------------------------------------------------
# Database
# Jobs live in the in-memory ledger; SQLite only backs the contrib apps.
# -----------------------------------------------------
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# -----------------------------------------------------
# Internationalization
# -----------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# -----------------------------------------------------
# Django REST Framework
# -----------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
}

CSRF_TRUSTED_ORIGINS = [
    o.strip() for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o.strip()
]

# -----------------------------------------------------
# Logging
# -----------------------------------------------------
LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()

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
        "enhancer": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}

# -----------------------------------------------------
# Enhancement service (env-driven)
# -----------------------------------------------------
SERVICE_NAME = env("SERVICE_NAME", "VisionBoost AI")
SERVICE_VERSION = env("SERVICE_VERSION", "1.0.0")

UPLOAD_ROOT = Path(env("UPLOAD_ROOT", str(BASE_DIR / "uploads")))
ENHANCED_ROOT = Path(env("ENHANCED_ROOT", str(BASE_DIR / "enhanced")))

FFMPEG_BIN = env("FFMPEG_BIN", "ffmpeg")
TRANSCODE_TIMEOUT_SECONDS = float(env("TRANSCODE_TIMEOUT_SECONDS", str(60 * 10)))

# Admission control: at most N transcodes run at once; extra requests wait
# up to the queue timeout for a slot and are then turned away with 503.
MAX_CONCURRENT_TRANSCODES = int(env("MAX_CONCURRENT_TRANSCODES", "2"))
TRANSCODE_QUEUE_TIMEOUT_SECONDS = float(env("TRANSCODE_QUEUE_TIMEOUT_SECONDS", "30"))

MAX_UPLOAD_BYTES = int(env("MAX_UPLOAD_BYTES", str(2 * 1024 ** 3)))  # 2 GiB

REPORT_SYNTHESIZER = env("REPORT_SYNTHESIZER", "enhancer.report.HeuristicReportSynthesizer")

# Large uploads spill to disk instead of memory
FILE_UPLOAD_TEMP_DIR = env("FILE_UPLOAD_TEMP_DIR", None)
