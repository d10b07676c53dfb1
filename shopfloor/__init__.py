from flask import Flask, jsonify
from flask_cors import CORS

from shopfloor.logging_config import configure_logging, get_logger
from shopfloor.models import db

logger = get_logger(__name__)


def create_app(config_overrides=None):
    # Import config after dotenv is loaded
    from shopfloor.config import get_config
    from shopfloor.db_config import configure_database
    from shopfloor.production import production_bp
    from shopfloor.production.scheduling.service import get_work_calendar

    # Get the appropriate config class based on environment
    config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(
        log_level=app.config.get("LOG_LEVEL", "INFO"),
        log_file=app.config.get("LOG_FILE"),
    )

    # Configure database separately
    configure_database(app)

    logger.info(f"Starting application in {app.config.get('ENV')} environment")
    logger.info(f"Database URI: {app.config.get('SQLALCHEMY_DATABASE_URI', 'Not set')[:50]}...")

    # Get allowed origins from environment variable
    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]

    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"])

    db.init_app(app)

    # Fail at startup on a bad calendar config rather than on the first request
    with app.app_context():
        calendar = get_work_calendar()
    logger.info("Work calendar configured", calendar=repr(calendar))

    # Register blueprints
    app.register_blueprint(production_bp, url_prefix="/production")

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app
