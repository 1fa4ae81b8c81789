"""
Reservation state machine.

    Pending  -> Approved | Denied | Cancelled
    Approved -> Cancelled | Completed
    Completed -> Closed

Denied, Cancelled and Closed are terminal. Every transition runs inside one
write transaction: the status check, the confirmed-interval registry, the
payment ledger, the audit note and the public calendar all commit or roll
back together. Notifications are queued after the commit.
"""

import logging

from database import write_transaction
from models.confirmed_interval import confirm_interval, release_interval
from models.payment import (
    cancel_pending_obligations, create_obligations, get_deposit_payment
)
from models.pricing import build_fee_schedule, calculate_facility_fee, format_currency
from models.public_calendar import sync_public_event
from models.reservation import (
    event_has_ended, get_reservation, insert_request, reservation_payload,
    validate_request_details
)
from models.reservation_note import add_note
from models.reservation_status import (
    PaymentStatus, ReservationStatus, TERMINAL_STATUSES, VALID_TRANSITIONS
)
from services.notification_service import notify_managers, send_notification
from utils.datetime_helpers import get_today, now_timestamp, parse_date
from utils.errors import (
    NotApplicableError, NotFoundError, PermissionDeniedError, StateTransitionError,
    ValidationError, action_result, workflow_action
)
from utils.messages import get_message
from utils.permissions import APPROVER_ROLES, has_any_role, require_role
from utils.validators import sanitize_input

logger = logging.getLogger(__name__)

ENTITY_TYPE = 'reservation_requests'

MANAGER_EVENT_CONTACT = 'Manager Event'
MANAGER_EVENT_ADDRESS = 'Internal - Manager Created'
MANAGER_EVENT_PHONE = '(000) 000-0000'


# =============================================================================
# TRANSITION RULES
# =============================================================================

def get_allowed_transitions(status: str) -> tuple:
    """Statuses reachable from the given one."""
    return VALID_TRANSITIONS[ReservationStatus(status)]


def validate_state_transition(current: str, target: ReservationStatus, message_key: str) -> None:
    """
    Check a transition before any mutation.

    Args:
        current: Current status value
        target: Requested status
        message_key: Message for an illegal transition

    Raises:
        NotApplicableError: Already in the target status or in a terminal status
        StateTransitionError: Transition not allowed from the current status
    """
    current = ReservationStatus(current)
    if current == target or current in TERMINAL_STATUSES:
        raise NotApplicableError(get_message('already_in_status', status=current.value))
    if target not in VALID_TRANSITIONS[current]:
        raise StateTransitionError(get_message(message_key))


def _load_for_update(reservation_id: int) -> dict:
    reservation = get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError(get_message('reservation_not_found'))
    return reservation


def _require_reason(reason, message_key: str) -> str:
    reason = sanitize_input(reason, 1000)
    if not reason:
        raise ValidationError(get_message(message_key))
    return reason


def _actor_name(actor) -> str:
    return actor.display_name if actor is not None else 'System'


def _notify_requestor(template_name: str, reservation_id: int) -> None:
    reservation = get_reservation(reservation_id)
    send_notification(template_name, ENTITY_TYPE, reservation_id,
                      reservation_payload(reservation),
                      recipient_user_id=reservation['requestor_id'])


# =============================================================================
# APPROVE
# =============================================================================

def _approve_in_transaction(cursor, reservation: dict, actor) -> dict:
    """
    Approval cascade; the caller holds the write transaction.

    Returns:
        Facility fee dict from calculate_facility_fee
    """
    event_date = parse_date(reservation['starts_at'])
    facility_fee = calculate_facility_fee(event_date)

    confirm_interval(reservation['id'], reservation['starts_at'], reservation['ends_at'])

    stamp = now_timestamp()
    cursor.execute('''
        UPDATE reservation_requests
        SET status = ?, reviewed_by = ?, reviewed_at = ?, facility_fee_amount = ?,
            is_holiday_or_weekend = ?, updated_at = ?
        WHERE id = ?
    ''', (ReservationStatus.APPROVED.value, actor.id, stamp, facility_fee['amount'],
          1 if facility_fee['is_holiday_or_weekend'] else 0, stamp, reservation['id']))

    create_obligations(reservation['id'],
                       build_fee_schedule(event_date, get_today(), facility_fee))

    add_note(reservation['id'],
             f"**Status changed to Approved** by {actor.display_name}. "
             f"Facility fee: {format_currency(facility_fee['amount'])}",
             author_id=actor.id)
    sync_public_event(reservation['id'])
    return facility_fee


@workflow_action
def approve_request(reservation_id: int, actor) -> dict:
    """
    Approve a pending request.

    Computes the facility fee, confirms the time slot, creates the payment
    obligations, then notifies the requestor.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (manager or administrator)

    Returns:
        Result dict; a slot conflict carries conflicting_reservation_id
    """
    require_role(actor, APPROVER_ROLES, 'only_approvers', 'venue.reservations.review')

    with write_transaction() as cursor:
        reservation = _load_for_update(reservation_id)
        validate_state_transition(reservation['status'], ReservationStatus.APPROVED, 'only_pending_approve')
        facility_fee = _approve_in_transaction(cursor, reservation, actor)

    logger.info('Reservation %s approved by user %s (fee %.2f)',
                reservation_id, actor.id, facility_fee['amount'])
    _notify_requestor('reservation_request_approved', reservation_id)

    return action_result(
        True,
        get_message('approved', fee=format_currency(facility_fee['amount'])),
        refresh=True,
        data={'facility_fee': facility_fee['amount'], 'tier': facility_fee['tier']}
    )


# =============================================================================
# DENY / CANCEL
# =============================================================================

@workflow_action
def deny_request(reservation_id: int, actor, reason: str) -> dict:
    """
    Deny a pending request.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (manager or administrator)
        reason: Denial reason (required)

    Returns:
        Result dict
    """
    require_role(actor, APPROVER_ROLES, 'only_approvers', 'venue.reservations.review')
    reason = _require_reason(reason, 'denial_reason_required')

    with write_transaction() as cursor:
        reservation = _load_for_update(reservation_id)
        validate_state_transition(reservation['status'], ReservationStatus.DENIED, 'only_pending_deny')

        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_requests
            SET status = ?, denial_reason = ?, reviewed_by = ?, reviewed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (ReservationStatus.DENIED.value, reason, actor.id, stamp, stamp, reservation_id))
        add_note(reservation_id,
                 f'**Status changed to Denied** by {actor.display_name}. Reason: {reason}',
                 author_id=actor.id)
        sync_public_event(reservation_id)

    logger.info('Reservation %s denied by user %s', reservation_id, actor.id)
    _notify_requestor('reservation_request_denied', reservation_id)
    return action_result(True, get_message('denied'), refresh=True)


@workflow_action
def cancel_request(reservation_id: int, actor, reason: str) -> dict:
    """
    Cancel a pending or approved request.

    Releases the confirmed slot and cancels every pending obligation. Paid
    obligations are left for manual refund and counted in the message.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (manager or administrator)
        reason: Cancellation reason (required)

    Returns:
        Result dict with cancelled_payments and paid_payments
    """
    require_role(actor, APPROVER_ROLES, 'permission_denied', 'venue.reservations.review')
    reason = _require_reason(reason, 'cancellation_reason_required')

    with write_transaction() as cursor:
        reservation = _load_for_update(reservation_id)
        validate_state_transition(reservation['status'], ReservationStatus.CANCELLED,
                                  'only_pending_or_approved_cancel')

        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_requests
            SET status = ?, cancellation_reason = ?, cancelled_by = ?, cancelled_at = ?, updated_at = ?
            WHERE id = ?
        ''', (ReservationStatus.CANCELLED.value, reason, actor.id, stamp, stamp, reservation_id))

        release_interval(reservation_id)
        cancelled, paid = cancel_pending_obligations(reservation_id)

        add_note(reservation_id,
                 f'**Status changed to Cancelled** by {actor.display_name}. Reason: {reason}',
                 author_id=actor.id)
        sync_public_event(reservation_id)

    logger.info('Reservation %s cancelled by user %s (%s pending cancelled, %s paid)',
                reservation_id, actor.id, cancelled, paid)
    _notify_requestor('reservation_request_cancelled', reservation_id)

    if paid and cancelled:
        message = get_message('cancelled_with_payments', cancelled=cancelled, paid=paid)
    elif paid:
        message = get_message('cancelled_paid_only', paid=paid)
    elif cancelled:
        message = get_message('cancelled_pending_only', cancelled=cancelled)
    else:
        message = get_message('cancelled')

    return action_result(True, message, refresh=True,
                         data={'cancelled_payments': cancelled, 'paid_payments': paid})


# =============================================================================
# COMPLETE / CLOSE
# =============================================================================

@workflow_action
def complete_request(reservation_id: int, actor=None, now=None) -> dict:
    """
    Mark an approved event as completed.

    With no actor this is the automation path and requires the event to have
    ended. Staff may complete at any time. The confirmed slot stays blocked.

    Args:
        reservation_id: Reservation ID
        actor: Acting user, or None for the automation runner
        now: Reference time for the end-time check

    Returns:
        Result dict
    """
    if actor is not None and not has_any_role(actor, APPROVER_ROLES):
        raise PermissionDeniedError(get_message('only_approvers'))

    with write_transaction() as cursor:
        reservation = _load_for_update(reservation_id)
        validate_state_transition(reservation['status'], ReservationStatus.COMPLETED,
                                  'only_approved_complete')
        if actor is None and not event_has_ended(reservation, now):
            raise StateTransitionError(get_message('event_not_ended'))

        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_requests SET status = ?, completed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (ReservationStatus.COMPLETED.value, stamp, stamp, reservation_id))
        add_note(reservation_id,
                 f'**Event completed.** Marked by {_actor_name(actor)}.',
                 author_id=actor.id if actor is not None else None)
        sync_public_event(reservation_id)

    logger.info('Reservation %s completed by %s', reservation_id, _actor_name(actor))
    notify_managers('manager_post_event_reminder', ENTITY_TYPE, reservation_id,
                    reservation_payload(get_reservation(reservation_id)))
    return action_result(True, get_message('completed'), refresh=True)


@workflow_action
def close_request(reservation_id: int, actor) -> dict:
    """
    Close a completed reservation.

    The refundable deposit must be refunded or waived first. Closing
    releases the slot from the registry and the public calendar.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (manager or administrator)

    Returns:
        Result dict
    """
    require_role(actor, APPROVER_ROLES, 'only_approvers', 'venue.reservations.review')

    with write_transaction() as cursor:
        reservation = _load_for_update(reservation_id)
        validate_state_transition(reservation['status'], ReservationStatus.CLOSED, 'only_completed_close')

        deposit = get_deposit_payment(reservation_id)
        if deposit and deposit['status'] == PaymentStatus.PAID:
            raise ValidationError(get_message('deposit_still_paid'))

        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_requests SET status = ?, closed_by = ?, closed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (ReservationStatus.CLOSED.value, actor.id, stamp, stamp, reservation_id))
        release_interval(reservation_id)
        add_note(reservation_id,
                 f'**Reservation closed** by {actor.display_name}. All processing complete.',
                 author_id=actor.id)
        sync_public_event(reservation_id)

    logger.info('Reservation %s closed by user %s', reservation_id, actor.id)
    return action_result(True, get_message('closed'), refresh=True)


# =============================================================================
# MANAGER EVENTS
# =============================================================================

@workflow_action
def create_manager_event(actor, details: dict) -> dict:
    """
    Book the venue on behalf of the park and approve it at once.

    Skips the policy and advance-notice checks. A slot conflict rolls the
    whole booking back.

    Args:
        actor: Acting user (manager or administrator)
        details: Request fields; contact fields are optional

    Returns:
        Result dict with reservation_id
    """
    require_role(actor, APPROVER_ROLES, 'only_approvers', 'venue.reservations.review')

    details = dict(details)
    details.setdefault('requestor_name', MANAGER_EVENT_CONTACT)
    details['requestor_name'] = details['requestor_name'] or MANAGER_EVENT_CONTACT
    details['requestor_address'] = details.get('requestor_address') or MANAGER_EVENT_ADDRESS
    details['requestor_phone'] = details.get('requestor_phone') or actor.phone or MANAGER_EVENT_PHONE
    details['requestor_email'] = details.get('requestor_email') or actor.email

    values = validate_request_details(details, enforce_policy=False, enforce_advance_notice=False,
                                      validate_contact_phone=details['requestor_phone'] != MANAGER_EVENT_PHONE)

    with write_transaction() as cursor:
        reservation_id = insert_request(actor.id, values, is_manager_event=True)
        add_note(reservation_id, f'**Manager event created** by {actor.display_name}',
                 author_id=actor.id)
        facility_fee = _approve_in_transaction(cursor, get_reservation(reservation_id), actor)

    logger.info('Manager event %s created by user %s', reservation_id, actor.id)
    return action_result(
        True,
        get_message('manager_event_created', fee=format_currency(facility_fee['amount'])),
        refresh=True,
        data={'reservation_id': reservation_id, 'facility_fee': facility_fee['amount']}
    )
