"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import datetime, time, timedelta

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'pavilion_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with isolated database."""
    from app import create_app
    from database import init_db

    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def users(app):
    """Admin from the seed plus a manager and a requestor, as Flask-Login users."""
    from models.role import get_role_by_name
    from models.user import User, create_user, get_user_by_id, get_user_by_username

    ids = {
        'admin': get_user_by_username('admin')['id'],
        'manager': create_user(
            'manager', 'manager@mottpark.org', 'manager123', 'Pat Manager',
            get_role_by_name('manager')['id'], '(810) 555-0101'
        ),
        'requestor': create_user(
            'requestor', 'jordan@example.com', 'requestor123', 'Jordan Requestor',
            get_role_by_name('requestor')['id'], '(810) 555-0199'
        ),
    }
    return {name: User(get_user_by_id(user_id)) for name, user_id in ids.items()}


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _login(client, username, password):
    response = client.post('/auth/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def authenticated_client(app, client):
    """Client logged in as the seeded administrator."""
    return _login(client, 'admin', 'admin123')


@pytest.fixture
def manager_client(app, users):
    """Client logged in as a pavilion manager."""
    return _login(app.test_client(), 'manager', 'manager123')


@pytest.fixture
def requestor_client(app, users):
    """Client logged in as a requestor."""
    return _login(app.test_client(), 'requestor', 'requestor123')


@pytest.fixture
def plain_weekday(app):
    """Return the first weekday on or after a date that is not a holiday."""
    from models.holiday_rule import is_holiday_or_weekend

    def _find(start):
        day = start
        while is_holiday_or_weekend(day):
            day += timedelta(days=1)
        return day
    return _find


@pytest.fixture
def reservation_details(app, plain_weekday):
    """Build a valid request payload for a plain weekday in the future."""
    from utils.datetime_helpers import get_today

    def _build(days_ahead=60, start_hour=12, hours=4, event_day=None, **overrides):
        event_day = event_day or plain_weekday(get_today() + timedelta(days=days_ahead))
        starts = datetime.combine(event_day, time(start_hour))
        details = {
            'requestor_name': 'Jordan Requestor',
            'requestor_address': '1 Park Dr, Flint, MI',
            'requestor_phone': '(810) 555-0199',
            'requestor_email': 'jordan@example.com',
            'organization_name': None,
            'event_type': 'Birthday Party',
            'starts_at': starts.isoformat(),
            'ends_at': (starts + timedelta(hours=hours)).isoformat(),
            'attendee_count': 40,
            'attendee_ages': 'All ages',
            'is_food_served': True,
            'is_public_event': False,
            'is_fundraiser': False,
            'is_admission_charged': False,
            'policy_agreed': True,
        }
        details.update(overrides)
        return details
    return _build


@pytest.fixture
def make_reservation(app, users, reservation_details):
    """Insert a Pending request directly (no advance-notice check) and return its ID."""
    from models.reservation import insert_request, validate_request_details

    def _make(requestor=None, **kwargs):
        values = validate_request_details(reservation_details(**kwargs), enforce_advance_notice=False)
        return insert_request((requestor or users['requestor']).id, values)
    return _make
