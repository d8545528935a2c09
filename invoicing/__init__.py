"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError, CSRFProtect
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from invoicing.database import get_session, init_db


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    app.logger.setLevel(level)
    logging.getLogger('invoicing').setLevel(level)


def _register_error_handlers(app):
    from invoicing.exceptions import InvoicingError, OperationFailed

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'The CSRF token is missing or invalid.'}), 400

    @app.errorhandler(InvoicingError)
    def handle_invoicing_error(error):
        """Domain errors carry their own status code and JSON body."""
        get_session().rollback()
        if error.status_code >= 500:
            app.logger.error(f"InvoicingError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"InvoicingError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        get_session().rollback()
        app.logger.exception(f"Database error on {request.method} {request.path}: {error}")
        failure = OperationFailed()
        return jsonify(failure.to_dict()), failure.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        get_session().rollback()
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    csrf = CSRFProtect(app)

    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    from invoicing.services.email_service import init_mail
    init_mail(app)

    from invoicing.services.cache_service import init_cache
    init_cache(app)

    from invoicing.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    from invoicing.middleware import load_user_and_tenant

    @app.before_request
    def before_request_handler():
        """Load user, tenant and scope for each request."""
        load_user_and_tenant()

    _register_error_handlers(app)

    from invoicing.blueprints.admin import admin_bp
    from invoicing.blueprints.auth import auth_bp, forgot_password, reset_password
    from invoicing.blueprints.customers import customers_bp
    from invoicing.blueprints.invoices import invoices_bp
    from invoicing.blueprints.main import main_bp
    from invoicing.blueprints.metrics import metrics_bp
    from invoicing.blueprints.public import public_bp
    from invoicing.blueprints.reports import reports_bp
    from invoicing.blueprints.settings import settings_bp
    from invoicing.blueprints.taxes import taxes_bp
    from invoicing.blueprints.webhooks import webhooks_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(metrics_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(taxes_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(admin_bp)

    # Reached without a session: the customer link and the reset email
    csrf.exempt(public_bp)
    csrf.exempt(forgot_password)
    csrf.exempt(reset_password)

    # Webhooks must be exempt from CSRF
    csrf.exempt(webhooks_bp)
    app.register_blueprint(webhooks_bp)

    from invoicing.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
