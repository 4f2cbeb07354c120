from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify, current_app, g
import uuid
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_cors import CORS
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException # Renamed to avoid conflict
from flask_talisman import Talisman
from blackjack_be.exceptions import AppException, ValidationException, InternalServerErrorException
from blackjack_be.error_codes import ErrorCodes
import logging
from pythonjsonlogger import jsonlogger
from marshmallow import ValidationError
from http import HTTPStatus

# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = g.get('request_id', 'N/A')
        return True

from .config import Config # Relative import
from .services.table_coordinator import TableCoordinator # Relative import
from .services.lobby import LobbyPresence # Relative import

# --- Blueprint Imports ---
from .routes.lobby import lobby_bp
from .routes.game import game_bp

def app_exception_response(e, request_id):
    """Renders an AppException as the common error envelope."""
    return jsonify({
        'request_id': request_id,
        'status': False,
        'error_code': e.error_code,
        'status_message': e.status_message,
        'details': e.details,
        'action_button': e.action_button
    }), e.status_code

def create_app(config_class=Config):
    """Application factory: one shared table per server process."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Security Headers with Talisman ---
    csp = {
        'default-src': "'self'",
        'connect-src': "'self'",
        'frame-ancestors': "'none'"
    }

    Talisman(app,
             force_https=app.config.get('FORCE_HTTPS', False),
             strict_transport_security=app.config.get('FORCE_HTTPS', False),
             content_security_policy=csp)

    # --- CORS Setup ---
    allowed_origins = []

    # Development origins
    if app.debug:
        allowed_origins.extend([
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ])

    if app.config.get('CORS_ORIGINS_LIST'):
        allowed_origins.extend(app.config['CORS_ORIGINS_LIST'])

    if allowed_origins:
        CORS(app,
             origins=allowed_origins,
             methods=['GET', 'POST', 'OPTIONS'],
             allow_headers=['Content-Type'],
             expose_headers=['X-RateLimit-Limit', 'X-RateLimit-Remaining'],
             max_age=86400)
        app.logger.info(f"CORS configured for origins: {allowed_origins}")
    else:
        app.logger.warning("No CORS origins configured - API will reject cross-origin requests")

    # --- Logging Configuration ---
    if not app.debug:
        logger = app.logger
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        if logger.hasHandlers():
            logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    else:
        # Basic logging for debug mode if not already configured
        if not app.logger.handlers:
            logging.basicConfig(level=logging.DEBUG)

    # --- Request ID Middleware ---
    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())

    # --- Rate Limiter Setup ---
    if app.config.get("TESTING"):
        app.config['RATELIMIT_ENABLED'] = False
        app.config['RATELIMIT_DEFAULT_LIMITS_ENABLED'] = False # Disable default limits as well
        app.config['RATELIMIT_DEFAULT_LIMITS'] = "10000 per second" # Set a very high limit
    else:
        app.config.setdefault('RATELIMIT_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT_LIMITS_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT_LIMITS', "20 per second")

    limiter = Limiter(key_func=get_remote_address) # No app, no enabled, no defaults here
    limiter.init_app(app) # Rely entirely on app.config values set above

    # --- Shared Table ---
    TableCoordinator(app, lobby_name=app.config.get('LOBBY_NAME', 'main'))
    app.lobby_presence = LobbyPresence(app.config.get('PRESENCE_TIMEOUT_SECONDS', 30))

    # --- Error Handlers ---
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        # Marshmallow's ValidationError, wrapped in the common error envelope.
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return app_exception_response(
            ValidationException('Input validation failed.', details={'errors': e.messages}), request_id
        )

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        request_id = g.get('request_id', 'N/A')
        error_code = ErrorCodes.GENERIC_ERROR # Default
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code == 401:
            error_code = ErrorCodes.UNAUTHENTICATED
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {request_id} - Werkzeug HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        response_data = {
            'request_id': request_id,
            'status': False,
            'error_code': error_code,
            'status_message': e.name,
            'details': {'description': e.description},
            'action_button': None
        }
        response = e.get_response()
        response.data = jsonify(response_data).data
        response.content_type = "application/json"
        return response

    # --- Global Error Handler (catch-all for general exceptions) ---
    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            log = current_app.logger.error if e.status_code >= 500 else current_app.logger.warning
            log(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=True if e.status_code >= 500 else False # Log stack trace for server errors
            )
            return app_exception_response(e, request_id)

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        # No specific details to expose for unknown errors
        return app_exception_response(
            InternalServerErrorException(
                'An unexpected internal server error occurred. Please try again later.'
            ),
            request_id
        )

    @app.errorhandler(404) # Catches werkzeug.exceptions.NotFound
    def handle_flask_not_found(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - HTTP 404 Not Found: {request.url} - Error Code: {ErrorCodes.NOT_FOUND}"
        )
        return jsonify({
            'request_id': request_id,
            'status': False,
            'error_code': ErrorCodes.NOT_FOUND,
            'status_message': 'The requested resource was not found.',
            'details': {'path': request.path},
            'action_button': None
        }), HTTPStatus.NOT_FOUND

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({'status': 'ok'}), HTTPStatus.OK

    # Register Blueprints
    app.register_blueprint(lobby_bp)
    app.register_blueprint(game_bp)

    log_production_warnings(app)
    return app

def log_production_warnings(app):
    if not app.debug and not app.config.get('TESTING'):
        if app.config.get('RATELIMIT_STORAGE_URI') == 'memory://':
            app.logger.warning(
                "RATELIMIT_STORAGE_URI is set to 'memory://'. "
                "Limits are tracked per process; run a single server process for the lobby."
            )
        if not app.config.get('FORCE_HTTPS'):
            app.logger.warning("FORCE_HTTPS is disabled; session tokens travel in clear text over plain HTTP.")

if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=app.debug, threaded=True)
