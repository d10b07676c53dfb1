import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with common settings."""
    # Plant calendar
    # Hours are plant-local; the end hour is exclusive (22 -> work stops at 22:00).
    WORK_DAY_START_HOUR = int(os.environ.get("WORK_DAY_START_HOUR", "6"))
    WORK_DAY_END_HOUR = int(os.environ.get("WORK_DAY_END_HOUR", "22"))
    # Comma-separated weekday numbers, Monday=0 ... Sunday=6
    WORKING_WEEKDAYS = os.environ.get("WORKING_WEEKDAYS", "0,1,2,3,4,5")
    # Comma-separated YYYY-MM-DD dates the plant is closed
    PLANT_HOLIDAYS = os.environ.get("PLANT_HOLIDAYS", "")
    PLANT_TIMEZONE = os.environ.get("PLANT_TIMEZONE", "America/Mexico_City")

    # Shift targets are rounded up to this many minutes
    SHIFT_SNAP_MINUTES = 15
    # Largest working-day offset accepted by /planning/shift-days (about ten years)
    MAX_SHIFT_DAYS = int(os.environ.get("MAX_SHIFT_DAYS", "3660"))

    # CORS configuration
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE", "logs/shopfloor.log")


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


class TestingConfig(Config):
    """Configuration for the test suite (in-memory SQLite, no log file)."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    LOG_FILE = None
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


CONFIG_BY_ENVIRONMENT = {
    "local": LocalConfig,
    "development": LocalConfig,
    "dev": LocalConfig,
    "sandbox": SandboxConfig,
    "staging": SandboxConfig,
    "stage": SandboxConfig,
    "production": ProductionConfig,
    "prod": ProductionConfig,
    "testing": TestingConfig,
    "test": TestingConfig,
}


def get_config():
    """Config class for FLASK_ENV (or ENVIRONMENT). Unknown or unset -> LocalConfig."""
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()
    return CONFIG_BY_ENVIRONMENT.get(env, LocalConfig)
