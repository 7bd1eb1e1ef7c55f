"""Application configuration helpers."""

import datetime
import logging
import os

from dotenv import load_dotenv

from .scheduling import SEMESTERS, Term

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")

if os.path.exists(_DOTENV_PATH):
    load_dotenv(_DOTENV_PATH)

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


_MONGO_URI_CACHE = None
_DB_NAME_CACHE = None

_DEV_SECRET_KEY = "sis-development-secret"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def get_mongo_uri():
    """Return the MongoDB connection string from the environment."""

    global _MONGO_URI_CACHE

    if _MONGO_URI_CACHE:
        return _MONGO_URI_CACHE

    uri = os.getenv("MONGODB_URI")
    if not uri:
        raise ConfigError("MONGODB_URI is not set. Define it in backend/.env.")

    _MONGO_URI_CACHE = uri
    return uri


def parse_db_name(uri):
    """Extract the database name from the path part of a MongoDB URI."""

    main = uri.split("?", 1)[0].rstrip("/")
    after_scheme = main.split("://", 1)[1] if "://" in main else main

    if "/" not in after_scheme or not after_scheme.split("/", 1)[1]:
        raise ConfigError(
            "Database name not found. Provide it via MONGODB_URI or MONGODB_DB."
        )
    return after_scheme.split("/", 1)[1]


def get_db_name():
    """Return the database name derived from the MongoDB URI or env var."""

    global _DB_NAME_CACHE

    if _DB_NAME_CACHE:
        return _DB_NAME_CACHE

    db_name = os.getenv("MONGODB_DB") or parse_db_name(get_mongo_uri())
    _DB_NAME_CACHE = db_name
    return db_name


def get_environment():
    return (os.getenv("SIS_ENV") or "development").strip().lower()


def is_production():
    return get_environment() == "production"


def get_secret_key():
    """Return the key used to sign bearer tokens."""

    key = os.getenv("SECRET_KEY")
    if key:
        return key
    if is_production():
        raise ConfigError("SECRET_KEY must be set when SIS_ENV=production.")
    logger.warning("SECRET_KEY is not set; using the development signing key.")
    return _DEV_SECRET_KEY


def _get_int(name, default, *, minimum=None):
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer.") from None
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}.")
    return value


def _get_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false).")


def get_current_term(today=None):
    """Return the scheduling term from SIS_TERM_SEMESTER / SIS_TERM_YEAR."""

    semester = (os.getenv("SIS_TERM_SEMESTER") or "Fall").strip().capitalize()
    if semester not in SEMESTERS:
        raise ConfigError(
            "SIS_TERM_SEMESTER must be one of: " + ", ".join(SEMESTERS) + "."
        )
    current_year = (today or datetime.date.today()).year
    year = _get_int("SIS_TERM_YEAR", current_year, minimum=1900)
    return Term(semester, year)


def get_default_capacity():
    return _get_int("SIS_DEFAULT_CAPACITY", 30, minimum=1)


def get_token_max_age():
    return _get_int("SIS_TOKEN_MAX_AGE", 30 * 24 * 60 * 60, minimum=1)


def use_transactions():
    """Whether multi-document writes should run inside a transaction."""

    return _get_bool("MONGODB_TRANSACTIONS", False)


def get_log_level():
    level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"LOG_LEVEL {level!r} is not a valid logging level.")
    return level


__all__ = [
    "ConfigError",
    "get_mongo_uri",
    "get_db_name",
    "parse_db_name",
    "get_environment",
    "is_production",
    "get_secret_key",
    "get_current_term",
    "get_default_capacity",
    "get_token_max_age",
    "use_transactions",
    "get_log_level",
]
