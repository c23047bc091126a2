from dotenv import load_dotenv
import os

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every store call is bounded: a pool checkout, the initial connect and each
    # statement all time out and surface as a retryable 503.
    DB_STATEMENT_TIMEOUT_MS = _env_int("DB_STATEMENT_TIMEOUT_MS", 5000)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 5,
        'max_overflow': 10,
        'pool_timeout': 30,
        'connect_args': {
            'sslmode': os.getenv("DB_SSLMODE", "require"),
            'connect_timeout': 10,
            'options': f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
        }
    }

    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Lifetime of bearer tokens minted by create_admin.py / create_token()
    AUTH_TOKEN_HOURS = _env_int("AUTH_TOKEN_HOURS", 12)

    # Business rules are evaluated in this civil timezone only
    CANONICAL_TIMEZONE = os.getenv("CANONICAL_TIMEZONE", "Asia/Shanghai")
    MEAL_WINDOWS = {
        "breakfast": os.getenv("MEAL_WINDOW_BREAKFAST", "06:00-10:00"),
        "lunch": os.getenv("MEAL_WINDOW_LUNCH", "11:00-14:00"),
        "dinner": os.getenv("MEAL_WINDOW_DINNER", "17:00-20:00"),
    }
    MEAL_WINDOW_END_INCLUSIVE = _env_bool("MEAL_WINDOW_END_INCLUSIVE", False)
    CONFIRMATION_GRACE_MINUTES = _env_int("CONFIRMATION_GRACE_MINUTES", 0)
    CANCEL_CUTOFF_MINUTES = _env_int("CANCEL_CUTOFF_MINUTES", 120)

    QR_TOKEN_SECRET = os.getenv("QR_TOKEN_SECRET")
    QR_TOKEN_TTL_SECONDS = _env_int("QR_TOKEN_TTL_SECONDS", 300)
    QR_TOKEN_MAX_TTL_SECONDS = _env_int("QR_TOKEN_MAX_TTL_SECONDS", 3600)

    MENU_CACHE_TTL_SECONDS = _env_int("MENU_CACHE_TTL_SECONDS", 300)
    MENU_CACHE_MAX_ENTRIES = _env_int("MENU_CACHE_MAX_ENTRIES", 100)
    STATS_CACHE_TTL_SECONDS = _env_int("STATS_CACHE_TTL_SECONDS", 60)
    STATS_CACHE_MAX_ENTRIES = _env_int("STATS_CACHE_MAX_ENTRIES", 50)

    BATCH_MAX_ITEMS = _env_int("BATCH_MAX_ITEMS", 100)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    QR_TOKEN_SECRET = "test-qr-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CANONICAL_TIMEZONE = "Asia/Shanghai"
    MEAL_WINDOWS = {
        "breakfast": "06:00-10:00",
        "lunch": "11:00-14:00",
        "dinner": "17:00-20:00",
    }
    MEAL_WINDOW_END_INCLUSIVE = False
    CONFIRMATION_GRACE_MINUTES = 0
    CANCEL_CUTOFF_MINUTES = 120
    QR_TOKEN_TTL_SECONDS = 300
    LOG_LEVEL = "DEBUG"
