from flask import current_app, jsonify
from flask_limiter import RateLimitExceeded

from .extensions import limiter

GENERAL_MESSAGE = "Too many requests from this IP, please try again in 15 minutes."
AUTH_MESSAGE = "Too many login attempts. Please try again in 15 minutes."
TOKEN_MESSAGE = "Token generation limit reached. Please try again in 1 hour."
API_MESSAGE = "Too many API requests. Please try again in 10 minutes."
STRICT_MESSAGE = "Too many attempts. Temporarily blocked for 5 minutes."


def _configured(key):
    return lambda: current_app.config[key]


# Un contador por clase de ruta (compartido entre las rutas de la clase)
auth_limit = limiter.shared_limit(_configured("RATELIMIT_AUTH"), scope="auth", error_message=AUTH_MESSAGE)
token_limit = limiter.shared_limit(_configured("RATELIMIT_TOKEN"), scope="token", error_message=TOKEN_MESSAGE)
api_limit = limiter.shared_limit(_configured("RATELIMIT_API"), scope="api", error_message=API_MESSAGE)
strict_limit = limiter.shared_limit(_configured("RATELIMIT_STRICT"), scope="strict", error_message=STRICT_MESSAGE)


def setup_rate_limit(app):
    app.config.setdefault("RATELIMIT_DEFAULT", app.config.get("RATELIMIT_GENERAL"))
    limiter.init_app(app)

    @app.errorhandler(RateLimitExceeded)
    def ratelimit_handler(exc):
        limit = getattr(exc, "limit", None)
        message = getattr(limit, "error_message", None) or GENERAL_MESSAGE
        if callable(message):
            message = message()
        app.logger.info("[ratelimit] %s", exc.description)
        return jsonify(error=message), 429
