"""
Permission checking and caching utilities.
Provides functions to load and check user permissions and roles.
"""

from database import get_db
from models.role import get_role_permissions
from utils.errors import PermissionDeniedError
from utils.messages import get_message

# Roles that may approve, deny, cancel, complete and close requests
APPROVER_ROLES = ('manager', 'admin')

# Roles that may record manual settlements, refunds and waivers
SETTLEMENT_ROLES = ('manager', 'admin')

# Roles that may hard-delete requests
DELETE_ROLES = ('admin',)


def load_user_permissions(user_id: int) -> set:
    """
    Load all permissions for a user based on their role.

    Args:
        user_id: User ID

    Returns:
        Set of permission codes
    """
    db = get_db()
    cursor = db.cursor()

    # Get user's role
    cursor.execute('SELECT role_id FROM users WHERE id = ? AND active = 1', (user_id,))
    row = cursor.fetchone()

    if not row or not row['role_id']:
        return set()

    # Get all permissions for the role
    permissions = get_role_permissions(row['role_id'])

    return {perm['code'] for perm in permissions}


def has_permission(user, permission_code: str) -> bool:
    """
    Check if user has a specific permission.

    Args:
        user: User object (Flask-Login)
        permission_code: Permission code to check

    Returns:
        True if user has permission
    """
    if user is None:
        return False
    user_permissions = load_user_permissions(user.id)
    return permission_code in user_permissions


def has_role(user, role_name: str) -> bool:
    """
    Check if user holds the named role.

    Args:
        user: User object (Flask-Login)
        role_name: Role name, e.g. 'manager'

    Returns:
        True if the user's role matches
    """
    if user is None:
        return False
    cursor = get_db().cursor()
    cursor.execute('''
        SELECT 1 FROM users u
        JOIN roles r ON u.role_id = r.id
        WHERE u.id = ? AND u.active = 1 AND r.active = 1 AND r.name = ?
    ''', (user.id, role_name))
    return cursor.fetchone() is not None


def has_any_role(user, role_names: tuple) -> bool:
    """Check if user holds any of the given roles."""
    return any(has_role(user, name) for name in role_names)


def require_role(user, role_names: tuple, message_key: str = 'permission_denied',
                 permission_code: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the actor holds one of the roles
    (and the permission, when given).

    Args:
        user: Acting user
        role_names: Accepted roles
        message_key: Message used for the error
        permission_code: Optional permission the actor must also hold

    Raises:
        PermissionDeniedError: If the check fails
    """
    if not has_any_role(user, role_names):
        raise PermissionDeniedError(get_message(message_key))
    if permission_code and not has_permission(user, permission_code):
        raise PermissionDeniedError(get_message(message_key))


def cache_user_permissions(user_id: int):
    """
    Cache user permissions in flask g object.

    Args:
        user_id: User ID
    """
    from flask import g
    g.user_permissions = load_user_permissions(user_id)
    g.user_permissions_owner = user_id
