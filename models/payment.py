"""
Payment ledger.

Each approved reservation owes one obligation per fee type (security
deposit, facility fee, cleaning fee). Obligations move through their own
status lifecycle independently:

    Pending -> Paid -> Refunded
    Pending -> Waived
    Pending -> Cancelled

Transitions are driven by manual staff actions or by payment gateway
callbacks. Callback handlers check the current status first so replays and
out-of-order deliveries are harmless.
"""

import logging

from flask import current_app

from database import get_db, write_transaction
from models.pricing import format_currency
from models.reservation_note import add_note
from models.reservation_status import (
    MANUAL_PAYMENT_METHODS, PaymentMethod, PaymentStatus, ReservationStatus
)
from services.payment_gateway import IN_FLIGHT_STATUSES, TransactionStatus, gateway
from utils.datetime_helpers import get_today, now_timestamp, parse_date
from utils.errors import (
    NotFoundError, PermissionDeniedError, ValidationError, action_result, workflow_action
)
from utils.messages import get_message
from utils.permissions import SETTLEMENT_ROLES, has_role, require_role

logger = logging.getLogger(__name__)

_PAYMENT_SELECT = '''
    SELECT p.*, ft.code as fee_type_code, ft.display_name as fee_type_name,
           ft.is_refundable, r.requestor_id, r.status as reservation_status,
           r.event_type, r.starts_at
    FROM reservation_payments p
    JOIN reservation_fee_types ft ON p.fee_type_id = ft.id
    JOIN reservation_requests r ON p.reservation_id = r.id
'''


# =============================================================================
# READ
# =============================================================================

def _row_to_payment(row, today=None) -> dict:
    """Convert a row and attach the values computed on read."""
    payment = dict(row)
    today = today or get_today()
    due_date = parse_date(payment['due_date'])
    is_pending = payment['status'] == PaymentStatus.PENDING

    payment['display_name'] = (
        f"{payment['fee_type_name']} - {format_currency(payment['amount'])} ({payment['status']})"
    )
    payment['days_until_due'] = (due_date - today).days if is_pending else None
    payment['is_overdue'] = is_pending and due_date < today
    payment['is_refundable'] = bool(payment['is_refundable'])
    return payment


def get_payment(payment_id: int) -> dict | None:
    """
    Get a payment obligation by ID.

    Args:
        payment_id: Obligation ID

    Returns:
        Obligation dict with fee type, computed fields, or None
    """
    cursor = get_db().cursor()
    cursor.execute(_PAYMENT_SELECT + ' WHERE p.id = ?', (payment_id,))
    row = cursor.fetchone()
    return _row_to_payment(row) if row else None


def get_payments_for_reservation(reservation_id: int) -> list:
    """Get all obligations for a reservation in fee-type order."""
    cursor = get_db().cursor()
    cursor.execute(
        _PAYMENT_SELECT + ' WHERE p.reservation_id = ? ORDER BY ft.sort_order, p.id',
        (reservation_id,)
    )
    return [_row_to_payment(row) for row in cursor.fetchall()]


def get_deposit_payment(reservation_id: int) -> dict | None:
    """Get the refundable deposit obligation for a reservation."""
    cursor = get_db().cursor()
    cursor.execute(
        _PAYMENT_SELECT + ' WHERE p.reservation_id = ? AND ft.is_refundable = 1 ORDER BY ft.sort_order',
        (reservation_id,)
    )
    row = cursor.fetchone()
    return _row_to_payment(row) if row else None


def find_pending_payments_due_on(due_date) -> list:
    """
    Pending obligations due on an exact date.

    Any reservation status qualifies: cancelling moves Pending obligations
    to Cancelled, so what remains Pending on a Completed event is still owed.
    """
    cursor = get_db().cursor()
    cursor.execute(
        _PAYMENT_SELECT + ' WHERE p.status = ? AND p.due_date = ? ORDER BY p.id',
        (PaymentStatus.PENDING.value, parse_date(due_date).isoformat())
    )
    return [_row_to_payment(row) for row in cursor.fetchall()]


def find_overdue_payments(today, window_days: int) -> list:
    """Pending obligations overdue by 1..window_days days."""
    today = parse_date(today)
    cursor = get_db().cursor()
    cursor.execute(
        _PAYMENT_SELECT + '''
        WHERE p.status = ?
          AND p.due_date < ?
          AND julianday(?) - julianday(p.due_date) <= ?
        ORDER BY p.due_date, p.id
        ''',
        (PaymentStatus.PENDING.value, today.isoformat(), today.isoformat(), window_days)
    )
    payments = []
    for row in cursor.fetchall():
        payment = _row_to_payment(row, today)
        payment['days_overdue'] = (today - parse_date(payment['due_date'])).days
        payments.append(payment)
    return payments


def find_paid_on_cancelled_reservations() -> list:
    """Paid obligations whose reservation was cancelled; these need a manual refund decision."""
    cursor = get_db().cursor()
    cursor.execute(
        _PAYMENT_SELECT + ' WHERE p.status = ? AND r.status = ? ORDER BY r.cancelled_at, p.id',
        (PaymentStatus.PAID.value, ReservationStatus.CANCELLED.value)
    )
    return [_row_to_payment(row) for row in cursor.fetchall()]


# =============================================================================
# OBLIGATION CREATION / CANCELLATION
# =============================================================================

def create_obligations(reservation_id: int, fee_schedule: list) -> int:
    """
    Create the full set of obligations for a reservation.

    Does nothing when the reservation already has obligations.

    Args:
        reservation_id: Reservation ID
        fee_schedule: Lines from pricing.build_fee_schedule

    Returns:
        Number of obligations created
    """
    with write_transaction() as cursor:
        cursor.execute(
            'SELECT COUNT(*) as count FROM reservation_payments WHERE reservation_id = ?',
            (reservation_id,)
        )
        if cursor.fetchone()['count'] > 0:
            logger.info('Obligations already exist for reservation %s; skipped', reservation_id)
            return 0

        stamp = now_timestamp()
        created = 0
        for line in fee_schedule:
            cursor.execute('''
                INSERT INTO reservation_payments
                    (reservation_id, fee_type_id, amount, due_date, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(reservation_id, fee_type_id) DO NOTHING
            ''', (reservation_id, line['fee_type_id'], round(line['amount'], 2),
                  parse_date(line['due_date']).isoformat(), PaymentStatus.PENDING.value,
                  stamp, stamp))
            created += cursor.rowcount

    return created


def cancel_pending_obligations(reservation_id: int) -> tuple:
    """
    Cancel every pending obligation of a reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        Tuple (cancelled_count, paid_count); paid obligations are left as is
    """
    with write_transaction() as cursor:
        cursor.execute('''
            UPDATE reservation_payments
            SET status = ?, transaction_id = NULL, updated_at = ?
            WHERE reservation_id = ? AND status = ?
        ''', (PaymentStatus.CANCELLED.value, now_timestamp(), reservation_id,
              PaymentStatus.PENDING.value))
        cancelled = cursor.rowcount

        cursor.execute('''
            SELECT COUNT(*) as count FROM reservation_payments
            WHERE reservation_id = ? AND status = ?
        ''', (reservation_id, PaymentStatus.PAID.value))
        paid = cursor.fetchone()['count']

    return cancelled, paid


# =============================================================================
# MANUAL ACTIONS
# =============================================================================

def _load_payment_or_raise(payment_id: int) -> dict:
    payment = get_payment(payment_id)
    if payment is None:
        raise NotFoundError(get_message('payment_not_found'))
    return payment


@workflow_action
def record_manual_payment(payment_id: int, method: str, payment_date=None, actor=None) -> dict:
    """
    Record an in-person payment against a pending obligation.

    Args:
        payment_id: Obligation ID
        method: Cash, Check, Money Order or CashApp
        payment_date: Date received (defaults to today)
        actor: Acting user (manager or administrator)

    Returns:
        Result dict
    """
    require_role(actor, SETTLEMENT_ROLES, 'only_managers_record', 'venue.payments.record')

    try:
        method = PaymentMethod(method)
    except ValueError:
        raise ValidationError(get_message('invalid_payment_method', method=method))
    if method not in MANUAL_PAYMENT_METHODS:
        raise ValidationError(get_message('invalid_payment_method', method=method.value))

    try:
        paid_on = parse_date(payment_date) if payment_date else get_today()
    except ValueError:
        raise ValidationError('Invalid payment date')

    with write_transaction() as cursor:
        payment = _load_payment_or_raise(payment_id)
        if payment['status'] != PaymentStatus.PENDING:
            raise ValidationError(get_message('only_pending_payable'))

        cursor.execute('''
            UPDATE reservation_payments
            SET status = ?, payment_method = ?, payment_date = ?, paid_amount = amount,
                recorded_by = ?, updated_at = ?
            WHERE id = ? AND status = ?
        ''', (PaymentStatus.PAID.value, method.value, paid_on.isoformat(), actor.id,
              now_timestamp(), payment_id, PaymentStatus.PENDING.value))

        add_note(payment['reservation_id'],
                 f"**{payment['fee_type_name']} payment received** ({method.value})",
                 author_id=actor.id)

    logger.info('Payment %s recorded as %s by user %s', payment_id, method.value, actor.id)
    return action_result(
        True,
        get_message('payment_recorded', method=method.value, date=paid_on.strftime('%b %d, %Y')),
        refresh=True,
        data=get_payment(payment_id)
    )


@workflow_action
def waive_all(reservation_id: int, actor) -> dict:
    """
    Waive every pending obligation of an approved reservation.

    Args:
        reservation_id: Reservation ID
        actor: Acting user (manager or administrator)

    Returns:
        Result dict with the waived count
    """
    require_role(actor, SETTLEMENT_ROLES, 'only_managers_record', 'venue.payments.record')

    with write_transaction() as cursor:
        cursor.execute('SELECT status FROM reservation_requests WHERE id = ?', (reservation_id,))
        row = cursor.fetchone()
        if row is None:
            raise NotFoundError(get_message('reservation_not_found'))
        if row['status'] != ReservationStatus.APPROVED:
            raise ValidationError(get_message('waive_requires_approved'))

        pending = [p for p in get_payments_for_reservation(reservation_id)
                   if p['status'] == PaymentStatus.PENDING]
        if not pending:
            raise ValidationError(get_message('no_pending_to_waive'))

        stamp = now_timestamp()
        for payment in pending:
            cursor.execute('''
                UPDATE reservation_payments
                SET status = ?, waived_by = ?, waived_at = ?, transaction_id = NULL, updated_at = ?
                WHERE id = ?
            ''', (PaymentStatus.WAIVED.value, actor.id, stamp, stamp, payment['id']))
            add_note(reservation_id, f"**{payment['fee_type_name']} waived** by {actor.display_name}",
                     author_id=actor.id)

    logger.info('%s payment(s) waived on reservation %s by user %s', len(pending), reservation_id, actor.id)
    return action_result(True, get_message('fees_waived', count=len(pending)), refresh=True,
                         data={'waived_count': len(pending)})


@workflow_action
def record_refund(payment_id: int, amount, notes: str | None = None, actor=None) -> dict:
    """
    Record a refund issued outside the gateway (cash, check).

    Args:
        payment_id: Obligation ID (must be Paid)
        amount: Amount refunded; defaults to the amount paid
        notes: Free-text refund notes
        actor: Acting user (manager or administrator)

    Returns:
        Result dict
    """
    require_role(actor, SETTLEMENT_ROLES, 'only_managers_record', 'venue.payments.record')

    with write_transaction() as cursor:
        payment = _load_payment_or_raise(payment_id)
        if payment['status'] != PaymentStatus.PAID:
            raise ValidationError(get_message('only_paid_refundable'))

        paid_amount = payment['paid_amount'] if payment['paid_amount'] is not None else payment['amount']
        try:
            refund_amount = round(float(amount), 2) if amount is not None else paid_amount
        except (TypeError, ValueError):
            raise ValidationError('Invalid refund amount')
        if refund_amount <= 0:
            raise ValidationError('Refund amount must be positive')
        if refund_amount > paid_amount:
            raise ValidationError(get_message('refund_exceeds_payment'))

        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_payments
            SET status = ?, refund_amount = ?, refund_notes = ?, refund_processed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (PaymentStatus.REFUNDED.value, refund_amount, notes, stamp, stamp, payment_id))

        add_note(payment['reservation_id'],
                 f"**{payment['fee_type_name']} refunded** ({format_currency(refund_amount)}) "
                 f"by {actor.display_name}",
                 author_id=actor.id)

    logger.info('Payment %s refunded (%.2f) by user %s', payment_id, refund_amount, actor.id)
    return action_result(True, get_message('refund_recorded', amount=format_currency(refund_amount)),
                         refresh=True, data=get_payment(payment_id))


# =============================================================================
# GATEWAY
# =============================================================================

@workflow_action
def initiate_payment(payment_id: int, actor) -> dict:
    """
    Start a card payment for an obligation.

    Reuses an in-flight transaction instead of creating a second one.

    Args:
        payment_id: Obligation ID
        actor: The requestor (or an administrator)

    Returns:
        Result dict with transaction_id, amount and reused
    """
    with write_transaction():
        payment = _load_payment_or_raise(payment_id)

        if actor is None or (actor.id != payment['requestor_id'] and not has_role(actor, 'admin')):
            raise PermissionDeniedError(get_message('only_requestor_pays'))
        if payment['fee_type_code'] in current_app.config.get('CARD_BLOCKED_FEE_TYPES', ()):
            raise ValidationError(get_message('card_not_accepted', fee=payment['fee_type_name']))
        if payment['reservation_status'] != ReservationStatus.APPROVED:
            raise ValidationError('Payments can only be made for approved reservations')
        if payment['status'] != PaymentStatus.PENDING:
            raise ValidationError(get_message('payment_already_processed'))

        if payment['transaction_id']:
            transaction = gateway.get_transaction(payment['transaction_id'])
            if transaction and transaction['status'] in IN_FLIGHT_STATUSES:
                return action_result(True, get_message('payment_in_progress'), data={
                    'transaction_id': transaction['id'],
                    'amount': transaction['amount'],
                    'reused': True,
                })
            if transaction and transaction['status'] == TransactionStatus.SUCCEEDED:
                raise ValidationError(get_message('payment_already_processed'))

        transaction_id = gateway.create_payment_intent(
            'reservation_payments', 'id', payment_id, 'transaction_id',
            payment['amount'],
            f"{payment['fee_type_name']} - Reservation #{payment['reservation_id']}"
        )

    return action_result(True, get_message('payment_started'), data={
        'transaction_id': transaction_id,
        'amount': payment['amount'],
        'reused': False,
    })


def _find_payment_for_transaction(transaction_id: str) -> dict | None:
    """Obligation linked to a transaction, falling back to the transaction's own record."""
    cursor = get_db().cursor()
    cursor.execute(_PAYMENT_SELECT + ' WHERE p.transaction_id = ?', (transaction_id,))
    row = cursor.fetchone()
    if row:
        return _row_to_payment(row)

    transaction = gateway.get_transaction(transaction_id)
    if transaction and transaction['entity_table'] == 'reservation_payments':
        return get_payment(transaction['entity_id'])
    return None


def on_gateway_transaction_update(transaction_id: str, status: str, amount=None) -> dict:
    """
    Apply a gateway transaction status change to its obligation.

    succeeded: mark Paid (unless already Paid or Refunded) as a card payment.
    failed / canceled: unlink the transaction from a still-Pending obligation
    so the payer can try again.

    Args:
        transaction_id: Gateway transaction ID
        status: Gateway status
        amount: Amount settled, when reported

    Returns:
        Dict with applied (bool) and message
    """
    try:
        status = TransactionStatus(status)
    except ValueError:
        logger.warning('Ignoring transaction %s update with unknown status %r', transaction_id, status)
        return {'applied': False, 'message': 'Unknown status'}

    with write_transaction() as cursor:
        payment = _find_payment_for_transaction(transaction_id)
        if payment is None:
            logger.warning('Gateway update for unknown transaction %s dropped', transaction_id)
            return {'applied': False, 'message': 'Unknown transaction'}

        gateway.update_transaction_status(transaction_id, status.value)
        stamp = now_timestamp()

        if status == TransactionStatus.SUCCEEDED:
            if payment['status'] in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                return {'applied': False, 'message': f"Payment already {payment['status']}"}
            if payment['status'] != PaymentStatus.PENDING:
                logger.warning(
                    'Card payment %s settled obligation %s in status %s; needs reconciliation',
                    transaction_id, payment['id'], payment['status']
                )
            paid_amount = round(float(amount), 2) if amount is not None else payment['amount']
            cursor.execute('''
                UPDATE reservation_payments
                SET status = ?, payment_method = ?, payment_date = ?, paid_amount = ?,
                    transaction_id = ?, updated_at = ?
                WHERE id = ?
            ''', (PaymentStatus.PAID.value, PaymentMethod.CREDIT_CARD.value,
                  get_today().isoformat(), paid_amount, transaction_id, stamp, payment['id']))
            add_note(payment['reservation_id'],
                     f"**{payment['fee_type_name']} payment received** ({PaymentMethod.CREDIT_CARD.value})")
            logger.info('Obligation %s paid by card (%s)', payment['id'], transaction_id)
            return {'applied': True, 'message': 'Payment recorded'}

        if status in (TransactionStatus.FAILED, TransactionStatus.CANCELED):
            if payment['status'] != PaymentStatus.PENDING or payment['transaction_id'] != transaction_id:
                return {'applied': False, 'message': 'Nothing to unlink'}
            cursor.execute('''
                UPDATE reservation_payments SET transaction_id = NULL, updated_at = ?
                WHERE id = ? AND status = ?
            ''', (stamp, payment['id'], PaymentStatus.PENDING.value))
            logger.info('Transaction %s %s; obligation %s unlinked', transaction_id, status.value, payment['id'])
            return {'applied': True, 'message': 'Transaction unlinked'}

    return {'applied': False, 'message': f'No action for status {status.value}'}


def on_gateway_refund_update(transaction_id: str, refund_id: str, amount, status: str) -> dict:
    """
    Apply a gateway refund event.

    Refunds are stored per refund ID; the obligation's refund_amount is the
    running total of succeeded refunds, so a replayed event never counts twice.

    Args:
        transaction_id: Original payment transaction
        refund_id: Gateway refund ID
        amount: Amount of this refund
        status: Refund status

    Returns:
        Dict with applied (bool), message and refund_total
    """
    try:
        status = TransactionStatus(status)
    except ValueError:
        logger.warning('Ignoring refund %s with unknown status %r', refund_id, status)
        return {'applied': False, 'message': 'Unknown status'}

    with write_transaction() as cursor:
        if gateway.get_transaction(transaction_id) is None:
            logger.warning('Refund %s for unknown transaction %s dropped', refund_id, transaction_id)
            return {'applied': False, 'message': 'Unknown transaction'}

        gateway.upsert_refund(refund_id, transaction_id, amount, status.value)

        payment = _find_payment_for_transaction(transaction_id)
        if payment is None:
            logger.warning('Refund %s has no linked obligation; recorded only', refund_id)
            return {'applied': False, 'message': 'No linked payment'}

        if status != TransactionStatus.SUCCEEDED:
            return {'applied': False, 'message': f'Refund {status.value}'}
        if payment['status'] not in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            logger.warning('Refund %s for obligation %s in status %s ignored',
                           refund_id, payment['id'], payment['status'])
            return {'applied': False, 'message': f"Payment is {payment['status']}"}

        total = gateway.get_refunded_total(transaction_id)
        stamp = now_timestamp()
        cursor.execute('''
            UPDATE reservation_payments
            SET status = ?, refund_amount = ?, refund_processed_at = ?, updated_at = ?
            WHERE id = ?
        ''', (PaymentStatus.REFUNDED.value, total, stamp, stamp, payment['id']))
        add_note(payment['reservation_id'],
                 f"**{payment['fee_type_name']} refunded** ({format_currency(total)}) by card refund")

    logger.info('Obligation %s refunded, running total %.2f', payment['id'], total)
    return {'applied': True, 'message': 'Refund recorded', 'refund_total': total}


def get_payment_ledger(start_date=None, end_date=None) -> list:
    """
    Every obligation for events starting within a date range.

    Args:
        start_date: First event date (inclusive)
        end_date: Last event date (inclusive)

    Returns:
        List of obligation dicts with reservation display fields
    """
    query = '''
        SELECT p.*, ft.code as fee_type_code, ft.display_name as fee_type_name,
               ft.is_refundable, r.requestor_id, r.status as reservation_status,
               r.requestor_name, r.organization_name, r.event_type, r.starts_at
        FROM reservation_payments p
        JOIN reservation_fee_types ft ON p.fee_type_id = ft.id
        JOIN reservation_requests r ON p.reservation_id = r.id
        WHERE 1=1
    '''
    params = []
    if start_date:
        query += ' AND substr(r.starts_at, 1, 10) >= ?'
        params.append(parse_date(start_date).isoformat())
    if end_date:
        query += ' AND substr(r.starts_at, 1, 10) <= ?'
        params.append(parse_date(end_date).isoformat())
    query += ' ORDER BY r.starts_at, ft.sort_order'

    cursor = get_db().cursor()
    cursor.execute(query, params)
    return [_row_to_payment(row) for row in cursor.fetchall()]
