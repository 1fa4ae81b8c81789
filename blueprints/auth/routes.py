"""
Authentication routes: login, logout, current user.
Sessions are cookie based through Flask-Login; every response is JSON.
"""

from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm
from models.user import User, get_user_by_username, update_last_login, check_password
from utils.api_response import api_success, api_error
from utils.messages import get_message
from utils.permissions import cache_user_permissions, load_user_permissions

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """CSRF token for browser clients that post JSON."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log a user in.

    Request body (JSON or form):
        username, password, remember_me

    Returns:
        JSON with the user profile and permission codes
    """
    form = LoginForm()

    if not form.validate_on_submit():
        errors = {field: messages[0] for field, messages in form.errors.items()}
        return api_error('Invalid login request', status=400, errors=errors)

    user_dict = get_user_by_username(form.username.data)

    if user_dict is None or not check_password(user_dict, form.password.data):
        return api_error(get_message('invalid_credentials'), status=401)

    if not user_dict.get('active'):
        return api_error(get_message('account_disabled'), status=403)

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)
    update_last_login(user.id)
    cache_user_permissions(user.id)

    return api_success(
        data=_profile(user),
        message=get_message('login_success', name=user.display_name)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    logout_user()
    return api_success(message=get_message('logout_success'))


@auth_bp.route('/me')
@login_required
def me():
    """Current user profile."""
    return api_success(data=_profile(current_user))


def _profile(user) -> dict:
    profile = user.to_dict()
    profile['permissions'] = sorted(load_user_permissions(user.id))
    return profile
