"""
Mott Park Pavilion Reservations
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g, redirect, url_for
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager, csrf

# Import database functions
from database import close_db, init_db


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)
    # Initialize CSRF Protection
    csrf.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.auth.routes import auth_bp
    from blueprints.api.routes import api_bp
    from blueprints.venue import venue_bp
    from blueprints.public.routes import public_bp
    from blueprints.webhooks.routes import webhooks_bp

    # Gateway callbacks authenticate with a shared secret instead of a session
    csrf.exempt(webhooks_bp)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(venue_bp, url_prefix='/venue')
    app.register_blueprint(public_bp, url_prefix='/public')
    app.register_blueprint(webhooks_bp, url_prefix='/webhooks')

    # Set default route
    @app.route('/')
    def index():
        """Redirect to the public calendar."""
        return redirect(url_for('public.calendar_json'))


def register_error_handlers(app):
    """Register JSON error handlers."""
    from utils.api_response import api_error

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 errors (including CSRF failures)."""
        return api_error(getattr(error, 'description', None) or 'Bad request', status=400)

    @app.errorhandler(401)
    def unauthorized_error(error):
        """Handle 401 errors."""
        return api_error('Authentication required', status=401)

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        from utils.messages import get_message
        return api_error(get_message('permission_denied'), status=403)

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error('Resource not found', status=404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error('Method not allowed', status=405)

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db:
            db.rollback()
        app.logger.error('Unhandled error: %s', error)
        return api_error('Internal server error', status=500)


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema, roles, fee policy and holiday rules."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('email')
    @click.option('--role', type=click.Choice(['admin', 'manager', 'requestor']),
                  default='requestor', show_default=True)
    @click.option('--full-name', default=None)
    @click.option('--phone', default=None)
    @click.password_option()
    def create_user_command(username, email, role, full_name, phone, password):
        """Create a new user."""
        import sqlite3
        from models.user import create_user
        from models.role import get_role_by_name

        with app.app_context():
            role_row = get_role_by_name(role)

            try:
                user_id = create_user(
                    username=username,
                    email=email,
                    password=password,
                    full_name=full_name,
                    role_id=role_row['id'],
                    phone=phone
                )
                click.echo(f'User created successfully! ID: {user_id}')
            except sqlite3.IntegrityError as e:
                raise click.ClickException(f'Error creating user: {e}')

    @app.cli.command('run-daily-tasks')
    @click.option('--date', 'run_date', default=None, help='Run date (YYYY-MM-DD), defaults to today.')
    def run_daily_tasks_command(run_date):
        """Run the daily automation pipeline (scheduled for 08:00 venue time)."""
        from services.automation_service import run_daily_automation

        with app.app_context():
            report = run_daily_automation(today=run_date, triggered_by='cli')

        for task in report['details']['tasks']:
            status = 'ok' if task['success'] else f"FAILED: {task['error']}"
            click.echo(f"  {task['task']}: {task['count']} ({status})")
        click.echo(report['message'])
        if not report['success']:
            raise SystemExit(1)


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/pavilion.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        logging.getLogger().addHandler(file_handler)
        logging.getLogger().setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Pavilion reservations startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', debug=True)
