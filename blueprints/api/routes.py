"""
Service-level API routes.
"""

from flask import jsonify, current_app, Blueprint

from database import get_db

api_bp = Blueprint('api', __name__)


@api_bp.route('/health')
def health_check():
    """
    Health check endpoint (no authentication required).

    Returns:
        JSON with status, version and database reachability
    """
    database_ok = True
    try:
        get_db().execute('SELECT 1').fetchone()
    except Exception:
        current_app.logger.error('Health check could not reach the database', exc_info=True)
        database_ok = False

    return jsonify({
        'status': 'ok' if database_ok else 'degraded',
        'database': database_ok,
        'version': current_app.config.get('APP_VERSION', '1.0.0'),
        'app': current_app.config.get('APP_NAME')
    }), 200 if database_ok else 503
