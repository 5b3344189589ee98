"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from osgb.database import init_db


def configure_logging(app):
    """Plain-text logging for the app and the service modules."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    app.logger.setLevel(level)
    logging.getLogger('osgb').setLevel(level)


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Sentry error tracking, production only
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Error Handlers
    from osgb.exceptions import OsgbError

    @app.errorhandler(OsgbError)
    def handle_osgb_error(error):
        """Translate domain errors into JSON responses."""
        app.logger.warning(f"OsgbError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from osgb.blueprints.companies import companies_bp
    from osgb.blueprints.catalog import catalog_bp
    from osgb.blueprints.proposals import proposals_bp

    app.register_blueprint(companies_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(proposals_bp)

    # Register CLI commands
    from osgb.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"BUSINESS_NAME={app.config.get('BUSINESS_NAME')}")

    return app
