"""
Automation Service - daily scheduled tasks for the pavilion.

Handles:
- Auto-completing approved events whose end time has passed
- Payment reminders (7 days before due, due today, overdue)
- Pre-event reminders to managers for events starting tomorrow
- Run history in scheduled_task_runs

Every reminder is recorded in reminder_log keyed by (task, entity, recipient,
run date) before it is sent, so running the pipeline twice on one day sends
nothing the second time. A failing task is logged and reported; the remaining
tasks still run.
"""

import json
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

from database import get_db, write_transaction
from models.payment import find_overdue_payments, find_pending_payments_due_on
from models.reservation import get_reservations, reservation_payload
from models.reservation_state import complete_request
from models.reservation_status import ReservationStatus
from models.user import get_users_by_roles
from services.notification_service import send_notification
from utils.datetime_helpers import (
    format_timestamp, get_now, get_today, now_timestamp, parse_date, to_aware_iso, to_local_naive
)
from utils.messages import get_message
from utils.permissions import APPROVER_ROLES

logger = logging.getLogger(__name__)

PIPELINE_NAME = 'daily_automation'


# =============================================================================
# IDEMPOTENCY
# =============================================================================

def claim_reminder(task_name: str, entity_type: str, entity_id: int,
                   recipient_user_id: int, run_date) -> bool:
    """
    Record a reminder before sending it.

    Returns:
        True if this is the first claim for the key; False if already sent
    """
    with write_transaction() as cursor:
        cursor.execute('''
            INSERT OR IGNORE INTO reminder_log
                (task_name, entity_type, entity_id, recipient_user_id, run_date)
            VALUES (?, ?, ?, ?, ?)
        ''', (task_name, entity_type, entity_id, recipient_user_id,
              parse_date(run_date).isoformat()))
        return cursor.rowcount == 1


def _payment_payload(payment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'payment_id': payment['id'],
        'reservation_id': payment['reservation_id'],
        'fee_type': payment['fee_type_name'],
        'amount': payment['amount'],
        'due_date': payment['due_date'],
        'display_name': payment['display_name'],
        'event_type': payment['event_type'],
        'event_date': parse_date(payment['starts_at']).isoformat(),
        'starts_at': to_aware_iso(payment['starts_at']),
    }


def _send_payment_reminders(task_name: str, payments: List[Dict[str, Any]], today) -> int:
    sent = 0
    for payment in payments:
        recipient = payment['requestor_id']
        if not claim_reminder(task_name, 'reservation_payments', payment['id'], recipient, today):
            continue
        payload = _payment_payload(payment)
        if 'days_overdue' in payment:
            payload['days_overdue'] = payment['days_overdue']
        send_notification(task_name, 'reservation_payments', payment['id'], payload,
                          recipient_user_id=recipient)
        sent += 1
    return sent


# =============================================================================
# TASKS
# =============================================================================

def auto_complete_past_events(today, now) -> int:
    """Complete every approved reservation whose end time has passed."""
    candidates = get_reservations(status=ReservationStatus.APPROVED.value)
    completed = 0
    for reservation in candidates:
        if reservation['ends_at'] > format_timestamp(now):
            continue
        result = complete_request(reservation['id'], actor=None, now=now)
        if result['success']:
            completed += 1
        else:
            logger.warning('Auto-complete skipped reservation %s: %s',
                           reservation['id'], result['message'])
    return completed


def payment_reminders_7day(today, now) -> int:
    """Remind payers of obligations due in exactly PAYMENT_REMINDER_DAYS days."""
    days = current_app.config.get('PAYMENT_REMINDER_DAYS', 7)
    payments = find_pending_payments_due_on(today + timedelta(days=days))
    return _send_payment_reminders('payment_reminder_7day', payments, today)


def payment_due_today(today, now) -> int:
    """Remind payers of obligations due today."""
    return _send_payment_reminders('payment_due_today', find_pending_payments_due_on(today), today)


def payment_overdue(today, now) -> int:
    """Remind payers of obligations overdue by 1..OVERDUE_REMINDER_WINDOW_DAYS days."""
    window = current_app.config.get('OVERDUE_REMINDER_WINDOW_DAYS', 7)
    return _send_payment_reminders('payment_overdue', find_overdue_payments(today, window), today)


def pre_event_reminders(today, now) -> int:
    """Remind every manager of approved events starting tomorrow."""
    tomorrow = today + timedelta(days=1)
    reservations = [
        r for r in get_reservations(status=ReservationStatus.APPROVED.value)
        if parse_date(r['starts_at']) == tomorrow
    ]
    if not reservations:
        return 0

    managers = get_users_by_roles(APPROVER_ROLES)
    sent = 0
    for reservation in reservations:
        payload = reservation_payload(reservation)
        for manager in managers:
            if not claim_reminder('manager_pre_event_reminder', 'reservation_requests',
                                  reservation['id'], manager['id'], today):
                continue
            send_notification('manager_pre_event_reminder', 'reservation_requests',
                              reservation['id'], payload, recipient_user_id=manager['id'])
            sent += 1
    return sent


DAILY_TASKS: List[tuple] = [
    ('auto_complete_past_events', auto_complete_past_events),
    ('payment_reminders_7day', payment_reminders_7day),
    ('payment_due_today', payment_due_today),
    ('payment_overdue', payment_overdue),
    ('pre_event_reminders', pre_event_reminders),
]


# =============================================================================
# RUNNER
# =============================================================================

def _run_task(name: str, task: Callable, today, now) -> Dict[str, Any]:
    try:
        count = task(today, now)
    except Exception as e:
        logger.error('Scheduled task %s failed', name, exc_info=True)
        return {'task': name, 'count': 0, 'success': False, 'error': str(e)}

    logger.info('Scheduled task %s processed %s record(s)', name, count)
    return {'task': name, 'count': count, 'success': True, 'error': None}


def run_daily_automation(today=None, now=None, triggered_by: str = 'scheduler') -> Dict[str, Any]:
    """
    Run the five daily tasks in order and record the run.

    Args:
        today: Run date (defaults to today in the venue timezone)
        now: Reference time for auto-completion (defaults to now)
        triggered_by: 'scheduler', 'cli' or a username

    Returns:
        Report dict: success, message, task_counts, details, run_id
    """
    now = to_local_naive(now if now is not None else get_now())
    today = parse_date(today) if today is not None else get_today()
    started_at = now_timestamp()

    results = [_run_task(name, task, today, now) for name, task in DAILY_TASKS]

    total = sum(r['count'] for r in results)
    failed = [r for r in results if not r['success']]
    task_counts = {r['task']: r['count'] for r in results}

    if failed:
        message = get_message('automation_partial', total=total, tasks=len(results), failed=len(failed))
    else:
        message = get_message('automation_summary', total=total, tasks=len(results))

    run_id = record_run(today, started_at, not failed, total, task_counts,
                        '; '.join(f"{r['task']}: {r['error']}" for r in failed) or None,
                        triggered_by)

    logger.info('Daily automation for %s finished: %s', today.isoformat(), message)
    return {
        'success': not failed,
        'message': message,
        'task_counts': task_counts,
        'details': {'total_processed': total, 'tasks': results},
        'run_id': run_id,
    }


# =============================================================================
# RUN HISTORY
# =============================================================================

def record_run(run_date, started_at: str, success: bool, total: int,
               task_counts: Dict[str, int], error_detail: Optional[str],
               triggered_by: str) -> int:
    with write_transaction() as cursor:
        cursor.execute('''
            INSERT INTO scheduled_task_runs
                (task_name, run_date, started_at, finished_at, success, total_processed,
                 task_counts, error_detail, triggered_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (PIPELINE_NAME, parse_date(run_date).isoformat(), started_at, now_timestamp(),
              1 if success else 0, total, json.dumps(task_counts), error_detail, triggered_by))
        return cursor.lastrowid


def get_recent_runs(limit: int = 20) -> List[Dict[str, Any]]:
    """Most recent pipeline runs, newest first."""
    cursor = get_db().cursor()
    cursor.execute('''
        SELECT * FROM scheduled_task_runs
        ORDER BY id DESC
        LIMIT ?
    ''', (limit,))
    runs = []
    for row in cursor.fetchall():
        run = dict(row)
        run['success'] = bool(run['success'])
        run['task_counts'] = json.loads(run['task_counts'])
        runs.append(run)
    return runs
