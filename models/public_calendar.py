"""
Public calendar projection.

The public calendar is a privacy-filtered copy of confirmed reservations.
It is re-derived after every change to a reservation request: confirmed
requests are upserted, anything else is removed. Private events expose only
a generic label and the time slot.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app

from database import get_db, write_transaction
from models.reservation_status import confirmed_status_values
from utils.datetime_helpers import (
    format_timestamp, get_timezone, get_today, now_timestamp, parse_timestamp, to_aware_iso
)

logger = logging.getLogger(__name__)

PRIVATE_LABEL = 'Private Event'

PROJECTED_FIELDS = (
    'starts_at', 'ends_at', 'display_name', 'event_type', 'is_public_event',
    'organization_name', 'contact_name', 'contact_phone', 'attendee_ages',
    'is_admission_charged'
)


# =============================================================================
# PROJECTION
# =============================================================================

def build_public_event(reservation: dict) -> dict:
    """
    Derive the public row for a reservation.

    Args:
        reservation: Reservation request row

    Returns:
        Dict of projected fields
    """
    if reservation['is_public_event']:
        host = reservation.get('organization_name') or reservation['requestor_name']
        return {
            'starts_at': reservation['starts_at'],
            'ends_at': reservation['ends_at'],
            'display_name': f"{host} - {reservation['event_type']}",
            'event_type': reservation['event_type'],
            'is_public_event': 1,
            'organization_name': reservation.get('organization_name'),
            'contact_name': reservation['requestor_name'],
            'contact_phone': reservation['requestor_phone'],
            'attendee_ages': reservation.get('attendee_ages'),
            'is_admission_charged': 1 if reservation.get('is_admission_charged') else 0,
        }

    return {
        'starts_at': reservation['starts_at'],
        'ends_at': reservation['ends_at'],
        'display_name': PRIVATE_LABEL,
        'event_type': PRIVATE_LABEL,
        'is_public_event': 0,
        'organization_name': None,
        'contact_name': None,
        'contact_phone': None,
        'attendee_ages': None,
        'is_admission_charged': None,
    }


def sync_public_event(reservation_id: int) -> bool:
    """
    Re-derive the public row for one reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        True if a public row exists after the sync
    """
    with write_transaction() as cursor:
        cursor.execute('SELECT * FROM reservation_requests WHERE id = ?', (reservation_id,))
        row = cursor.fetchone()

        if row is None or row['status'] not in confirmed_status_values():
            cursor.execute('DELETE FROM public_calendar_events WHERE id = ?', (reservation_id,))
            return False

        event = build_public_event(dict(row))
        columns = ', '.join(PROJECTED_FIELDS)
        placeholders = ', '.join('?' * len(PROJECTED_FIELDS))
        updates = ', '.join(f'{field} = excluded.{field}' for field in PROJECTED_FIELDS)
        cursor.execute(f'''
            INSERT INTO public_calendar_events (id, {columns}, synced_at)
            VALUES (?, {placeholders}, ?)
            ON CONFLICT(id) DO UPDATE SET {updates}, synced_at = excluded.synced_at
        ''', (reservation_id,) + tuple(event[field] for field in PROJECTED_FIELDS) + (now_timestamp(),))
        return True


# =============================================================================
# QUERIES
# =============================================================================

def default_calendar_range() -> tuple:
    """Default feed window around today."""
    today = get_today()
    start = today - timedelta(days=current_app.config.get('CALENDAR_PAST_DAYS', 30))
    end = today + timedelta(days=current_app.config.get('CALENDAR_FUTURE_DAYS', 365))
    return (datetime(start.year, start.month, start.day),
            datetime(end.year, end.month, end.day) + timedelta(days=1))


def get_public_calendar(range_start=None, range_end=None) -> list:
    """
    Public events overlapping a range.

    Args:
        range_start: Range start (datetime, date or ISO string); defaults to today - 30 days
        range_end: Range end; defaults to today + 1 year

    Returns:
        List of public event dicts ordered by start, with ISO-8601 times
    """
    default_start, default_end = default_calendar_range()
    start_text = format_timestamp(range_start) if range_start is not None else format_timestamp(default_start)
    end_text = format_timestamp(range_end) if range_end is not None else format_timestamp(default_end)

    cursor = get_db().cursor()
    cursor.execute('''
        SELECT * FROM public_calendar_events
        WHERE starts_at < ? AND ends_at > ?
        ORDER BY starts_at
    ''', (end_text, start_text))

    events = []
    for row in cursor.fetchall():
        event = dict(row)
        event['is_public_event'] = bool(event['is_public_event'])
        if event['is_admission_charged'] is not None:
            event['is_admission_charged'] = bool(event['is_admission_charged'])
        event['start'] = to_aware_iso(event['starts_at'])
        event['end'] = to_aware_iso(event['ends_at'])
        events.append(event)
    return events


# =============================================================================
# ICALENDAR FEED
# =============================================================================

def _escape_text(value: str) -> str:
    return (value.replace('\\', '\\\\').replace(';', '\\;')
            .replace(',', '\\,').replace('\n', '\\n'))


def _fold(line: str) -> list:
    """Split a content line into 75-octet chunks."""
    encoded = line.encode('utf-8')
    if len(encoded) <= 75:
        return [line]
    parts = []
    current = ''
    for char in line:
        if len((current + char).encode('utf-8')) > 75:
            parts.append(current)
            current = ' ' + char
        else:
            current += char
    parts.append(current)
    return parts


def _utc_stamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def event_description(event: dict) -> str | None:
    """Description line for a feed entry; private events carry none."""
    if not event['is_public_event']:
        return None
    if event.get('organization_name'):
        return f"Hosted by: {event['organization_name']}\nType: {event['event_type']}"
    return f"Type: {event['event_type']}"


def build_ical_feed(events: list) -> str:
    """
    Render public events as an iCalendar (RFC 5545) document.

    Args:
        events: Rows from get_public_calendar

    Returns:
        Calendar text with CRLF line endings
    """
    config = current_app.config
    tz = get_timezone()
    dtstamp = _utc_stamp(datetime.now(timezone.utc))

    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        f"PRODID:-//{config.get('VENUE_NAME')}//Pavilion Reservations//EN",
        'CALSCALE:GREGORIAN',
        'METHOD:PUBLISH',
        f"X-WR-CALNAME:{_escape_text(config.get('CALENDAR_NAME'))}",
        f'X-WR-TIMEZONE:{tz.key}',
    ]

    for event in events:
        starts = parse_timestamp(event['starts_at']).replace(tzinfo=tz)
        ends = parse_timestamp(event['ends_at']).replace(tzinfo=tz)
        lines.extend([
            'BEGIN:VEVENT',
            f"UID:event-{event['id']}@{config.get('CALENDAR_UID_DOMAIN')}",
            f'DTSTAMP:{dtstamp}',
            f'DTSTART:{_utc_stamp(starts)}',
            f'DTEND:{_utc_stamp(ends)}',
            f"SUMMARY:{_escape_text(event['display_name'])}",
            f"LOCATION:{_escape_text(config.get('VENUE_LOCATION'))}",
        ])
        description = event_description(event)
        if description:
            lines.append(f'DESCRIPTION:{_escape_text(description)}')
        lines.append('END:VEVENT')

    lines.append('END:VCALENDAR')

    folded = []
    for line in lines:
        folded.extend(_fold(line))
    return '\r\n'.join(folded) + '\r\n'
