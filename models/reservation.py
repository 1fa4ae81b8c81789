"""
Reservation request data access and submission.
Handles validation, create, read, detail updates and hard delete.
"""

import logging
from datetime import timedelta

from flask import current_app

from database import get_db, write_transaction
from models.confirmed_interval import release_interval
from models.public_calendar import sync_public_event
from models.reservation_status import ReservationStatus, TERMINAL_STATUSES
from models.user import get_user_by_id
from services.notification_service import notify_managers
from utils.datetime_helpers import (
    format_timestamp, get_now, get_today, now_timestamp, parse_date, parse_timestamp,
    to_aware_iso, to_local_naive
)
from utils.errors import (
    NotFoundError, PermissionDeniedError, StateTransitionError, ValidationError,
    action_result, workflow_action
)
from utils.messages import get_message
from utils.permissions import APPROVER_ROLES, DELETE_ROLES, has_any_role, require_role
from utils.validators import sanitize_input, validate_email, validate_phone

logger = logging.getLogger(__name__)

BOOLEAN_FIELDS = ('is_food_served', 'is_public_event', 'is_fundraiser', 'is_admission_charged')

EDITABLE_FIELDS = (
    'requestor_name', 'requestor_address', 'requestor_phone', 'requestor_email',
    'organization_name', 'event_type', 'starts_at', 'ends_at', 'attendee_count',
    'attendee_ages'
) + BOOLEAN_FIELDS


# =============================================================================
# READ
# =============================================================================

def _row_to_reservation(row) -> dict:
    """Convert a row and attach the values computed on read."""
    reservation = dict(row)
    today = get_today()
    event_date = parse_date(reservation['starts_at'])
    host = reservation.get('organization_name') or reservation['requestor_name']

    reservation['display_name'] = f"{host} - {reservation['event_type']}"
    reservation['event_date'] = event_date.isoformat()
    reservation['days_until_event'] = (event_date - today).days
    reservation['request_age_days'] = (today - parse_date(reservation['created_at'])).days
    for field in BOOLEAN_FIELDS + ('policy_agreed', 'is_manager_event'):
        reservation[field] = bool(reservation[field])
    if reservation.get('is_holiday_or_weekend') is not None:
        reservation['is_holiday_or_weekend'] = bool(reservation['is_holiday_or_weekend'])
    return reservation


def get_reservation(reservation_id: int) -> dict | None:
    """
    Get a reservation request by ID.

    Args:
        reservation_id: Reservation ID

    Returns:
        Reservation dict with computed display fields, or None
    """
    cursor = get_db().cursor()
    cursor.execute('SELECT * FROM reservation_requests WHERE id = ?', (reservation_id,))
    row = cursor.fetchone()
    return _row_to_reservation(row) if row else None


def get_reservations(status: str | None = None, requestor_id: int | None = None,
                     range_start=None, range_end=None) -> list:
    """
    List reservation requests.

    Args:
        status: Filter by status
        requestor_id: Filter by requestor
        range_start: Only requests ending after this time
        range_end: Only requests starting before this time

    Returns:
        List of reservation dicts ordered by start time
    """
    query = 'SELECT * FROM reservation_requests WHERE 1=1'
    params = []

    if status:
        query += ' AND status = ?'
        params.append(ReservationStatus(status).value)
    if requestor_id is not None:
        query += ' AND requestor_id = ?'
        params.append(requestor_id)
    if range_start is not None:
        query += ' AND ends_at > ?'
        params.append(format_timestamp(range_start))
    if range_end is not None:
        query += ' AND starts_at < ?'
        params.append(format_timestamp(range_end))

    query += ' ORDER BY starts_at, id'

    cursor = get_db().cursor()
    cursor.execute(query, params)
    return [_row_to_reservation(row) for row in cursor.fetchall()]


def reservation_payload(reservation: dict) -> dict:
    """Raw values handed to notification templates."""
    return {
        'reservation_id': reservation['id'],
        'display_name': reservation['display_name'],
        'event_type': reservation['event_type'],
        'requestor_name': reservation['requestor_name'],
        'organization_name': reservation.get('organization_name'),
        'attendee_count': reservation['attendee_count'],
        'starts_at': to_aware_iso(reservation['starts_at']),
        'ends_at': to_aware_iso(reservation['ends_at']),
        'status': reservation['status'],
        'facility_fee_amount': reservation.get('facility_fee_amount'),
        'denial_reason': reservation.get('denial_reason'),
        'cancellation_reason': reservation.get('cancellation_reason'),
    }


# =============================================================================
# VALIDATION
# =============================================================================

def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def validate_request_details(details: dict, enforce_policy: bool = True,
                             enforce_advance_notice: bool = True,
                             validate_contact_phone: bool = True) -> dict:
    """
    Validate and normalize reservation request fields.

    Args:
        details: Raw request fields
        enforce_policy: Require policy_agreed to be true
        enforce_advance_notice: Require MIN_ADVANCE_DAYS of notice
        validate_contact_phone: Check the phone against US formats

    Returns:
        Dict of column values ready for insert

    Raises:
        ValidationError: On the first invalid field
    """
    values = {}

    for field, label in (('requestor_name', 'Contact name'),
                         ('requestor_address', 'Address'),
                         ('requestor_phone', 'Phone'),
                         ('event_type', 'Event type')):
        values[field] = sanitize_input(details.get(field), 200)
        if not values[field]:
            raise ValidationError(get_message('field_required', field=label))

    if validate_contact_phone and not validate_phone(values['requestor_phone']):
        raise ValidationError(get_message('invalid_phone'))

    values['requestor_email'] = sanitize_input(details.get('requestor_email'), 200)
    if values['requestor_email'] and not validate_email(values['requestor_email']):
        raise ValidationError(get_message('invalid_email'))

    values['organization_name'] = sanitize_input(details.get('organization_name'), 200)
    values['attendee_ages'] = sanitize_input(details.get('attendee_ages'), 100)

    try:
        starts_at = to_local_naive(details.get('starts_at'))
        ends_at = to_local_naive(details.get('ends_at'))
    except (TypeError, ValueError):
        raise ValidationError(get_message('field_required', field='A valid start and end time'))
    if starts_at >= ends_at:
        raise ValidationError(get_message('invalid_interval'))
    values['starts_at'] = format_timestamp(starts_at)
    values['ends_at'] = format_timestamp(ends_at)

    capacity = current_app.config.get('MAX_ATTENDEES', 75)
    try:
        attendee_count = int(details.get('attendee_count'))
    except (TypeError, ValueError):
        raise ValidationError(get_message('capacity_exceeded', capacity=capacity))
    if not 1 <= attendee_count <= capacity:
        raise ValidationError(get_message('capacity_exceeded', capacity=capacity))
    values['attendee_count'] = attendee_count

    for field in BOOLEAN_FIELDS:
        values[field] = 1 if _as_bool(details.get(field, False)) else 0

    if enforce_policy and not _as_bool(details.get('policy_agreed', False)):
        raise ValidationError(get_message('policy_required'))

    if enforce_advance_notice:
        min_days = current_app.config.get('MIN_ADVANCE_DAYS', 10)
        if starts_at.date() < get_today() + timedelta(days=min_days):
            raise ValidationError(get_message('advance_notice', days=min_days))

    return values


# =============================================================================
# CREATE
# =============================================================================

def insert_request(requestor_id: int, values: dict, is_manager_event: bool = False) -> int:
    """Insert a validated request in Pending status and sync the public view."""
    stamp = now_timestamp()
    columns = list(values.keys()) + [
        'requestor_id', 'policy_agreed', 'policy_agreed_at', 'is_manager_event',
        'status', 'created_at', 'updated_at'
    ]
    params = list(values.values()) + [
        requestor_id, 1, stamp, 1 if is_manager_event else 0,
        ReservationStatus.PENDING.value, stamp, stamp
    ]

    with write_transaction() as cursor:
        cursor.execute(
            f"INSERT INTO reservation_requests ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' * len(columns))})",
            params
        )
        reservation_id = cursor.lastrowid
        sync_public_event(reservation_id)

    return reservation_id


def submit_request(requestor_id: int, details: dict) -> int:
    """
    Submit a reservation request for review.

    Args:
        requestor_id: Submitting user
        details: Request fields (contact, event, starts_at/ends_at, attendees,
            flags, policy_agreed)

    Returns:
        New reservation ID

    Raises:
        ValidationError: Missing fields, bad interval, capacity exceeded,
            policy not agreed, or advance notice not met
        NotFoundError: Unknown requestor
    """
    requestor = get_user_by_id(requestor_id)
    if requestor is None:
        raise NotFoundError('Requestor not found')

    values = validate_request_details(details)
    if not values['requestor_email']:
        values['requestor_email'] = requestor['email']

    reservation_id = insert_request(requestor_id, values)
    logger.info('Reservation request %s submitted by user %s', reservation_id, requestor_id)

    reservation = get_reservation(reservation_id)
    notify_managers('reservation_request_submitted', 'reservation_requests',
                    reservation_id, reservation_payload(reservation))
    return reservation_id


# =============================================================================
# UPDATE / DELETE
# =============================================================================

@workflow_action
def update_request_details(reservation_id: int, changes: dict, actor) -> dict:
    """
    Edit a request's descriptive fields.

    Staff may edit any open request; a requestor may edit their own while it
    is pending. The time slot can only move while the request is pending.

    Args:
        reservation_id: Reservation ID
        changes: Fields to change
        actor: Acting user

    Returns:
        Result dict
    """
    with write_transaction() as cursor:
        reservation = get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError(get_message('reservation_not_found'))

        is_staff = has_any_role(actor, APPROVER_ROLES)
        is_owner = actor is not None and actor.id == reservation['requestor_id']
        status = ReservationStatus(reservation['status'])
        if not is_staff and not (is_owner and status == ReservationStatus.PENDING):
            raise PermissionDeniedError(get_message('permission_denied'))
        if status in TERMINAL_STATUSES:
            raise StateTransitionError(f'{status.value} requests cannot be edited')

        merged = {field: reservation[field] for field in EDITABLE_FIELDS}
        merged.update({k: v for k, v in changes.items() if k in EDITABLE_FIELDS})

        try:
            slot_changed = (
                format_timestamp(merged['starts_at']) != reservation['starts_at']
                or format_timestamp(merged['ends_at']) != reservation['ends_at']
            )
        except (TypeError, ValueError):
            raise ValidationError(get_message('field_required', field='A valid start and end time'))
        if slot_changed and status != ReservationStatus.PENDING:
            raise ValidationError(get_message('time_slot_locked'))

        values = validate_request_details(
            merged, enforce_policy=False,
            enforce_advance_notice=slot_changed and not is_staff,
            validate_contact_phone=not reservation['is_manager_event']
        )
        assignments = ', '.join(f'{field} = ?' for field in values)
        cursor.execute(
            f'UPDATE reservation_requests SET {assignments}, updated_at = ? WHERE id = ?',
            list(values.values()) + [now_timestamp(), reservation_id]
        )
        sync_public_event(reservation_id)

    logger.info('Reservation %s details updated by user %s', reservation_id, actor.id)
    return action_result(True, get_message('request_updated'), refresh=True,
                         data=get_reservation(reservation_id))


@workflow_action
def delete_request(reservation_id: int, actor) -> dict:
    """
    Hard-delete a request with its ledger, notes and public row.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (administrators only)

    Returns:
        Result dict
    """
    require_role(actor, DELETE_ROLES, 'only_admin_delete', 'venue.reservations.delete')

    with write_transaction() as cursor:
        cursor.execute('SELECT id FROM reservation_requests WHERE id = ?', (reservation_id,))
        if cursor.fetchone() is None:
            raise NotFoundError(get_message('reservation_not_found'))

        release_interval(reservation_id)
        cursor.execute('DELETE FROM reservation_requests WHERE id = ?', (reservation_id,))
        sync_public_event(reservation_id)

    logger.warning('Reservation %s deleted by user %s', reservation_id, actor.id)
    return action_result(True, get_message('request_deleted'), refresh=True)


def event_has_ended(reservation: dict, now=None) -> bool:
    """True once the reservation's end time has passed."""
    now = to_local_naive(now if now is not None else get_now())
    return parse_timestamp(reservation['ends_at']) <= now
