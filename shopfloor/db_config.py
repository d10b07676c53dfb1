"""Database configuration per environment.

local      -> LOCAL_DATABASE_URL or a SQLite file next to the app
sandbox    -> SANDBOX_DATABASE_URL (Postgres)
production -> PRODUCTION_DATABASE_URL or DATABASE_URL (Postgres)
"""
import os

LOCAL_SQLITE_URI = "sqlite:///planning.sqlite"

REMOTE_URL_VARIABLES = {
    "sandbox": ("SANDBOX_DATABASE_URL",),
    "production": ("PRODUCTION_DATABASE_URL", "DATABASE_URL"),
}

ENVIRONMENT_ALIASES = {
    "staging": "sandbox",
    "stage": "sandbox",
    "prod": "production",
}


def get_database_engine_options():
    """Engine options for the hosted Postgres databases."""
    from sqlalchemy.pool import QueuePool

    return {
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": int(os.environ.get("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.environ.get("DB_MAX_OVERFLOW", "10")),
        "pool_timeout": 30,
        "poolclass": QueuePool,
        "connect_args": {
            "sslmode": os.environ.get("DB_SSLMODE", "require"),
            "connect_timeout": 10,
            "application_name": "shopfloor_planner",
            # 15s max per SQL statement
            "options": "-c statement_timeout=15000",
        },
    }


def _normalize_environment(environment):
    if environment is None:
        environment = os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")
    environment = environment.lower()
    return ENVIRONMENT_ALIASES.get(environment, environment)


def get_database_config(environment=None):
    """Get (database_uri, engine_options) for an environment.

    Args:
        environment: 'local', 'sandbox', 'production' (or an alias).
            Defaults to FLASK_ENV / ENVIRONMENT.

    Raises:
        ValueError: If a sandbox/production URL is not configured
    """
    environment = _normalize_environment(environment)

    variables = REMOTE_URL_VARIABLES.get(environment)
    if variables is None:
        return os.environ.get("LOCAL_DATABASE_URL") or LOCAL_SQLITE_URI, None

    database_url = next((os.environ[name] for name in variables if os.environ.get(name)), None)
    if not database_url:
        raise ValueError(f"{' or '.join(variables)} must be set for {environment} environment")

    return database_url, get_database_engine_options()


def configure_database(app):
    """Set SQLAlchemy config keys on the Flask app.

    An explicit SQLALCHEMY_DATABASE_URI (tests, config overrides) is kept.
    """
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("SQLALCHEMY_ECHO", False)

    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        return

    database_uri, engine_options = get_database_config(app.config.get("ENV"))
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri

    if engine_options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options
