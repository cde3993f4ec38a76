"""
Flask Application Factory
Initializes and configures the Flask application
"""

import logging
from flask import Flask, jsonify, request
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFError, CSRFProtect
from config import config
from tindapos.errors import PosError
from tindapos.models import db
from tindapos.utils.cache import init_cache

logger = logging.getLogger(__name__)

# Initialize extensions
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()


class PosServices:
    """The service objects of one application instance"""

    def __init__(self, app):
        from tindapos.services.catalog_service import CatalogService
        from tindapos.services.document_store import SqlDocumentStore
        from tindapos.services.lending_service import LendingLedger
        from tindapos.services.local_mirror import LocalMirror, ReadThroughStore
        from tindapos.services.offline_queue import OfflineQueue
        from tindapos.services.report_service import ReportService
        from tindapos.services.sale_service import SaleService
        from tindapos.services.shift_service import ShiftLedger
        from tindapos.services.sync_service import SyncService
        from tindapos.services.write_gateway import DurableWriteGateway

        self.store = SqlDocumentStore(app.config['REMOTE_STORE_URL'])
        self.queue = OfflineQueue(app)
        self.mirror = LocalMirror(app)
        self.sync = SyncService(app, self.store, self.queue, self.mirror)
        self.reader = ReadThroughStore(self.store, self.mirror, self.sync.is_online)
        self.gateway = DurableWriteGateway(self.store, self.queue, self.sync.is_online, self.mirror)
        self.shifts = ShiftLedger(self.store, self.gateway, self.sync.is_online)
        self.sales = SaleService(self.store, self.gateway, self.shifts, self.reader)
        self.lending = LendingLedger(self.store, self.gateway, self.shifts, self.reader)
        self.reports = ReportService(self.store, self.gateway)
        self.catalog = CatalogService(self.store, self.gateway, self.reader, app.config)


def get_services(app=None):
    from flask import current_app
    return (app or current_app).extensions['tindapos']


def create_app(config_name='default'):
    """
    Application factory pattern
    Creates and configures Flask application
    """
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Validate secret key in production
    if config_name == 'production':
        if not app.config.get('SECRET_KEY') or app.config['SECRET_KEY'] == 'dev-secret-key-change-in-production':
            raise ValueError("Production requires a secure SECRET_KEY. Set it via environment variable.")
        if len(app.config['SECRET_KEY']) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters for production.")

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    init_cache(app)

    services = PosServices(app)
    app.extensions['tindapos'] = services

    from tindapos.services.document_store import RemoteStoreError
    try:
        services.store.create_schema()
    except RemoteStoreError as e:
        app.logger.warning(f"Remote store not initialized, running offline: {e}")

    @login_manager.user_loader
    def load_user(user_id):
        """Rebuild the logged-in account from the session so it works offline"""
        from flask import session
        from tindapos.documents import AccountUser
        account = session.get('account')
        if account and account.get('id') == user_id:
            return AccountUser(account)
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    # Register blueprints
    from tindapos.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from tindapos.routes.pos import bp as pos_bp
    app.register_blueprint(pos_bp, url_prefix='/pos')

    from tindapos.routes.shifts import bp as shifts_bp
    app.register_blueprint(shifts_bp, url_prefix='/shifts')

    from tindapos.routes.lending import bp as lending_bp
    app.register_blueprint(lending_bp, url_prefix='/lending')

    from tindapos.routes.reports import bp as reports_bp
    app.register_blueprint(reports_bp, url_prefix='/reports')

    from tindapos.routes.inventory import bp as inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    from tindapos.routes.admin import bp as admin_bp
    app.register_blueprint(admin_bp, url_prefix='/admin')

    from tindapos.routes.sync import bp as sync_bp
    app.register_blueprint(sync_bp, url_prefix='/sync')

    @app.route('/')
    def index():
        return jsonify({'name': app.config.get('BUSINESS_NAME'), 'status': 'ok'})

    # Error handlers
    @app.errorhandler(PosError)
    def handle_pos_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RemoteStoreError)
    def handle_remote_store_error(error):
        logger.error(f"Remote store error on {request.path}: {error}")
        return jsonify({'success': False, 'error': 'Server unreachable, please try again'}), 503

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({
            'success': False,
            'error': 'CSRF token missing or invalid',
            'message': 'Please refresh the page and try again'
        }), 400

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        return response

    return app
