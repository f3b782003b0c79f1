import json
import os
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _load_points(env_name, default):
    """Read a JSON point table from the environment, falling back to default"""
    raw = os.environ.get(env_name)
    if not raw:
        return dict(default)

    try:
        return {str(k): int(v) for k, v in json.loads(raw).items()}
    except (ValueError, AttributeError, TypeError):
        warnings.warn(
            f"{env_name} is not a valid JSON object of integers, using defaults.",
            UserWarning,
        )
        return dict(default)


DEFAULT_SCORING_POINTS = {
    "first_place": 5,
    "second_place": 3,
    "third_place": 1,
    "fastest_lap": 1,
    "driver_of_the_day": 1,
}

DEFAULT_SPRINT_SCORING_POINTS = {
    "first_place": 5,
    "second_place": 3,
    "third_place": 1,
}


class Config:
    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "f1_predictor_db"
            db_user = os.environ.get("DB_USER") or "f1_user"
            db_password = os.environ.get("DB_PASSWORD") or "f1_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Prediction rules
    PREDICTION_LOCK_MINUTES = int(os.environ.get("PREDICTION_LOCK_MINUTES") or 5)
    SCORING_POINTS = _load_points("SCORING_POINTS", DEFAULT_SCORING_POINTS)
    SPRINT_SCORING_POINTS = _load_points(
        "SPRINT_SCORING_POINTS", DEFAULT_SPRINT_SCORING_POINTS
    )

    # Race times are stored in UTC, this only affects display
    TIMEZONE = os.environ.get("TIMEZONE", "UTC")

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"
    SCORING_SWEEP_MINUTES = int(os.environ.get("SCORING_SWEEP_MINUTES") or 60)

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if not os.environ.get("DATABASE_URL") and not os.environ.get("DB_TYPE"):
            warnings.warn(
                "PRODUCTION WARNING: no DATABASE_URL or DB_TYPE set, "
                "falling back to a local SQLite file.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = False
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
