"""
Route decorators for authentication and authorization.
Provides permission-based access control for routes.
"""

import hmac
from functools import wraps
from flask import g, abort, request, current_app
from flask_login import login_required, current_user


def permission_required(permission_code: str):
    """
    Decorator to require specific permission for a route.

    Usage:
        @bp.route('/reservations/<int:reservation_id>/approve', methods=['POST'])
        @login_required
        @permission_required('venue.reservations.review')
        def approve(reservation_id):
            ...

    Args:
        permission_code: Permission code required (e.g., 'venue.reservations.view')

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # Cache is per user; one app context can serve several sessions
            if g.get('user_permissions_owner') != current_user.id:
                from utils.permissions import cache_user_permissions
                cache_user_permissions(current_user.id)

            if permission_code not in g.user_permissions:
                abort(403)

            return func(*args, **kwargs)
        return wrapper
    return decorator


def webhook_signature_required(func):
    """
    Decorator for inbound gateway webhooks.

    Compares the X-Webhook-Secret header with PAYMENT_WEBHOOK_SECRET.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get('PAYMENT_WEBHOOK_SECRET') or ''
        provided = request.headers.get('X-Webhook-Secret', '')
        if not expected or not hmac.compare_digest(expected, provided):
            abort(401)
        return func(*args, **kwargs)
    return wrapper


# Re-export login_required for convenience
__all__ = ['login_required', 'permission_required', 'webhook_signature_required']
