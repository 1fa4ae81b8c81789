"""
Confirmed interval registry.

Holds one row per confirmed reservation with its half-open time interval
[starts_at, ends_at). Inserting a row is the only place double booking is
prevented: pending requests may overlap freely, and the registry rejects an
interval that intersects any confirmed one. Calls join the caller's write
transaction so the check and the insert are atomic with the status change.
"""

import logging
import sqlite3

from database import get_db, write_transaction
from utils.datetime_helpers import format_timestamp
from utils.errors import SlotConflictError
from utils.messages import get_message

logger = logging.getLogger(__name__)


def find_conflicting_reservation(starts_at, ends_at, exclude_reservation_id: int | None = None) -> int | None:
    """
    Find a confirmed reservation whose interval intersects the given one.

    Args:
        starts_at: Interval start (datetime or stored timestamp)
        ends_at: Interval end
        exclude_reservation_id: Reservation to ignore (itself)

    Returns:
        Colliding reservation ID or None
    """
    cursor = get_db().cursor()
    cursor.execute('''
        SELECT reservation_id FROM confirmed_intervals
        WHERE starts_at < ? AND ends_at > ?
          AND reservation_id != COALESCE(?, -1)
        ORDER BY starts_at
        LIMIT 1
    ''', (format_timestamp(ends_at), format_timestamp(starts_at), exclude_reservation_id))
    row = cursor.fetchone()
    return row['reservation_id'] if row else None


def confirm_interval(reservation_id: int, starts_at, ends_at) -> None:
    """
    Register a reservation's interval as confirmed.

    Re-confirming the same reservation with the same interval is a no-op.

    Args:
        reservation_id: Reservation ID
        starts_at: Interval start
        ends_at: Interval end

    Raises:
        SlotConflictError: If the interval intersects a confirmed one
    """
    start_text = format_timestamp(starts_at)
    end_text = format_timestamp(ends_at)

    with write_transaction() as cursor:
        cursor.execute(
            'SELECT starts_at, ends_at FROM confirmed_intervals WHERE reservation_id = ?',
            (reservation_id,)
        )
        existing = cursor.fetchone()
        if existing and existing['starts_at'] == start_text and existing['ends_at'] == end_text:
            return

        conflict_id = find_conflicting_reservation(start_text, end_text, reservation_id)
        if conflict_id is not None:
            raise SlotConflictError(
                get_message('slot_conflict', conflicting_id=conflict_id),
                conflicting_reservation_id=conflict_id
            )

        try:
            if existing:
                cursor.execute('''
                    UPDATE confirmed_intervals
                    SET starts_at = ?, ends_at = ?, confirmed_at = CURRENT_TIMESTAMP
                    WHERE reservation_id = ?
                ''', (start_text, end_text, reservation_id))
            else:
                cursor.execute('''
                    INSERT INTO confirmed_intervals (reservation_id, starts_at, ends_at)
                    VALUES (?, ?, ?)
                ''', (reservation_id, start_text, end_text))
        except sqlite3.IntegrityError as e:
            # Overlap trigger fired
            conflict_id = find_conflicting_reservation(start_text, end_text, reservation_id)
            raise SlotConflictError(
                get_message('slot_conflict', conflicting_id=conflict_id),
                conflicting_reservation_id=conflict_id
            ) from e

    logger.info('Interval confirmed for reservation %s: %s - %s', reservation_id, start_text, end_text)


def release_interval(reservation_id: int) -> bool:
    """
    Remove a reservation's confirmed interval if present.

    Args:
        reservation_id: Reservation ID

    Returns:
        True if a row was removed
    """
    with write_transaction() as cursor:
        cursor.execute('DELETE FROM confirmed_intervals WHERE reservation_id = ?', (reservation_id,))
        removed = cursor.rowcount > 0

    if removed:
        logger.info('Interval released for reservation %s', reservation_id)
    return removed


def get_confirmed_intervals(range_start=None, range_end=None) -> list:
    """
    List confirmed intervals, optionally limited to those touching a range.

    Returns:
        List of dicts ordered by start
    """
    query = 'SELECT * FROM confirmed_intervals'
    params = []
    if range_start is not None and range_end is not None:
        query += ' WHERE starts_at < ? AND ends_at > ?'
        params = [format_timestamp(range_end), format_timestamp(range_start)]
    query += ' ORDER BY starts_at'

    cursor = get_db().cursor()
    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]
