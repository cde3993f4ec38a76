"""
Application Entry Point
Initializes and runs the Flask application with background sync
"""

import os
import logging
import click
from tindapos import create_app, db, get_services

# Determine configuration environment
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Setup logging
if not os.path.exists(app.config['LOG_FOLDER']):
    os.makedirs(app.config['LOG_FOLDER'])

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(app.config['LOG_FOLDER'], 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@app.shell_context_processor
def make_shell_context():
    """Make database and services available in Flask shell"""
    from tindapos.models import PendingWrite
    return {'db': db, 'PendingWrite': PendingWrite, 'services': get_services(app)}


@app.cli.command('init-db')
def init_db():
    """Initialize local tables, the remote schema, a default admin and default categories"""
    logger.info("Initializing database...")
    db.create_all()

    services = get_services(app)
    services.store.create_schema()

    username = app.config['DEFAULT_ADMIN_USERNAME']
    if not services.store.query('users', [('username', '==', username)], limit=1):
        services.catalog.create_user(username, app.config['DEFAULT_ADMIN_PASSWORD'], 'admin', 'Administrator')
        logger.info(f"Default admin user created (username: {username})")

    services.catalog.list_categories()
    logger.info("Database initialized successfully!")


@app.cli.command('drain-queue')
def drain_queue():
    """Manually replay the offline write queue"""
    logger.info("Starting manual sync...")
    report = get_services(app).sync.sync_all()
    if report is None:
        click.echo("Remote store unreachable, nothing replayed")
    else:
        click.echo(f"Replayed {report['replayed']}, failed {report['failed']}, remaining {report['remaining']}")


@app.cli.command('sync-status')
def sync_status():
    """Show offline queue status"""
    status = get_services(app).sync.get_sync_status()
    for key, value in status.items():
        click.echo(f"{key}: {value}")


def start_background_services():
    """Replay anything queued from a previous run and start the sync scheduler"""
    logger.info("Starting background services...")
    sync_service = get_services(app).sync

    sync_service.process_sync_queue()

    if app.config['AUTO_SYNC']:
        sync_service.start_scheduler()
        logger.info("Sync service started")


if __name__ == '__main__':
    # Check if running in development mode
    is_dev = os.environ.get('FLASK_ENV', 'development') == 'development'
    use_reloader = os.environ.get('FLASK_USE_RELOADER', 'true').lower() == 'true'

    with app.app_context():
        # Create tables if they don't exist
        db.create_all()
        logger.info("Database tables created")

    # Start background services (only if not using reloader to avoid duplicate services)
    if not use_reloader or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        start_background_services()

    logger.info(f"Starting {app.config['BUSINESS_NAME']} POS System...")
    logger.info(f"Debug mode: {is_dev}, Auto-reload: {use_reloader}")

    app.run(
        host='0.0.0.0',
        port=5001,
        debug=is_dev,
        use_reloader=use_reloader
    )
