import logging
import os

from dotenv import load_dotenv
from flask import Flask
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from clinica.core import config  # noqa: E402
from clinica.core.api_utils import api_response, error_response  # noqa: E402
from clinica.core.auth_decorators import close_uow, get_uow  # noqa: E402
from clinica.core.exceptions import ClinicError  # noqa: E402
from clinica.core.limiter_config import limiter  # noqa: E402
from clinica.core.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)


def create_app():
    app = Flask(__name__)

    if config.is_testing():
        app.config["TESTING"] = True

    setup_logging(
        app=app,
        log_level=config.get_log_level(),
        log_to_file=config.get_log_to_file(),
        use_json_format=config.get_log_json() or config.is_production(),
    )
    config.log_config()

    app.config["SECRET_KEY"] = config.get_secret_key()
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = config.is_production()

    # Initialize Flask-Limiter (rate limiting)
    app.config["RATELIMIT_STORAGE_URI"] = os.getenv("LIMITER_STORAGE_URI", "memory://")
    limiter.init_app(app)
    if not config.get_rate_limit_enabled():
        limiter.enabled = False
        logger.info(
            "Rate limiting disabled", extra={"context": {"testing": config.is_testing()}}
        )

    # Initialize Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return get_uow().users.get_db_by_id(int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return api_response(False, "Autenticação necessária", {"kind": "unauthorized"}, 401)

    app.teardown_appcontext(close_uow)

    @app.errorhandler(ClinicError)
    def handle_clinic_error(error: ClinicError):
        return error_response(error)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return api_response(False, error.description, None, error.code)
        logger.error(
            "Unhandled exception",
            extra={"context": {"error": str(error)}},
            exc_info=True,
        )
        return api_response(False, "Erro interno do servidor", {"kind": "error"}, 500)

    from clinica.controllers.auth_controller import auth_bp
    from clinica.controllers.client_controller import client_bp
    from clinica.controllers.document_controller import documents_bp
    from clinica.controllers.report_controller import reports_bp
    from clinica.controllers.schedule_controller import schedule_bp
    from clinica.controllers.stock_controller import stock_bp
    from clinica.controllers.user_controller import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(schedule_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(documents_bp)

    @app.route("/health", methods=["GET"])
    @limiter.exempt
    def health():
        return api_response(True, "ok")

    logger.info(
        "Application created",
        extra={"context": {"blueprints": sorted(app.blueprints)}},
    )
    return app
