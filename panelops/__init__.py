import logging
import os

from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_bcrypt import Bcrypt
from flask_marshmallow import Marshmallow
from marshmallow import ValidationError


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
bcrypt = Bcrypt()
ma = Marshmallow()

logger = logging.getLogger(__name__)


def create_app(config_object='panelops.config.Config'):
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_object)
    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app)
    bcrypt.init_app(app)
    ma.init_app(app)

    from panelops import models  # noqa: F401  (registers tables)

    with app.app_context():
        from panelops.database_setup import initialize_database, register_db_commands

        # Register CLI commands
        register_db_commands(app)

        # Create missing tables and seed default settings
        initialize_database()

    from panelops.tasks import register_task_commands
    register_task_commands(app)

    # Register blueprints
    from panelops.routes.auth import auth_bp
    from panelops.routes.panels import panels_bp
    from panelops.routes.clients import clients_bp
    from panelops.routes.services import services_bp
    from panelops.routes.subscriptions import subscriptions_bp
    from panelops.routes.payments import payments_bp
    from panelops.routes.cuts import cuts_bp
    from panelops.routes.projects import projects_bp
    from panelops.routes.finance import finance_bp
    from panelops.routes.dashboard import dashboard_bp
    from panelops.routes.settings import settings_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(panels_bp, url_prefix='/api/panels')
    app.register_blueprint(clients_bp, url_prefix='/api/clients')
    app.register_blueprint(services_bp, url_prefix='/api/services')
    app.register_blueprint(subscriptions_bp, url_prefix='/api/subscriptions')
    app.register_blueprint(payments_bp, url_prefix='/api/payments')
    app.register_blueprint(cuts_bp, url_prefix='/api/cuts')
    app.register_blueprint(projects_bp, url_prefix='/api/projects')
    app.register_blueprint(finance_bp, url_prefix='/api/finance')
    app.register_blueprint(dashboard_bp, url_prefix='/api/dashboard')
    app.register_blueprint(settings_bp, url_prefix='/api/settings')

    @app.route('/api/health')
    def health_check():
        return {
            'status': 'healthy',
            'message': 'panelops API is running!',
            'version': '1.0.0'
        }, 200

    @app.route('/api/status')
    def app_status():
        """Complete application status"""
        try:
            from panelops.models import Panel
            Panel.query.first()
            db_status = 'connected'
        except Exception as e:
            logger.exception("Database status check failed")
            db_status = f'error: {str(e)}'

        return {
            'application': 'panelops',
            'version': '1.0.0',
            'status': 'running',
            'database': db_status,
            'environment': os.getenv('FLASK_ENV', 'development'),
            'endpoints': {
                'health': '/api/health',
                'auth': '/api/auth/login',
                'dashboard': '/api/dashboard',
                'finance': '/api/finance/monthly'
            }
        }, 200

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return jsonify({'message': 'Invalid data', 'errors': error.messages}), 400

    @app.errorhandler(404)
    def not_found(error):
        """Custom 404 handler"""
        return {
            'error': 'API endpoint not found',
            'message': f'The endpoint {request.path} does not exist.',
            'available_endpoints': [
                '/api/health',
                '/api/status'
            ]
        }, 404

    @app.errorhandler(500)
    def internal_error(error):
        """Custom 500 handler"""
        return {
            'error': 'Internal server error',
            'message': 'Something went wrong on the server.',
            'suggestion': 'Check server logs for details.'
        }, 500

    return app
