"""
Public calendar routes (no authentication).
Serve the privacy-filtered projection of confirmed reservations.
"""

from flask import Blueprint, Response, request

from models.public_calendar import build_ical_feed, get_public_calendar
from utils.api_response import api_success, api_error

public_bp = Blueprint('public', __name__)

EXPOSED_FIELDS = (
    'id', 'start', 'end', 'display_name', 'event_type', 'is_public_event',
    'organization_name', 'contact_name', 'contact_phone', 'attendee_ages',
    'is_admission_charged'
)


def _range_args() -> tuple:
    return request.args.get('start') or None, request.args.get('end') or None


@public_bp.route('/calendar')
def calendar_json():
    """
    Public events overlapping a range.

    Query params:
        start: Range start, ISO-8601 (optional)
        end: Range end, ISO-8601 (optional)
    """
    start, end = _range_args()
    try:
        events = get_public_calendar(start, end)
    except ValueError:
        return api_error('Invalid date range', status=400)

    return api_success(data=[{field: event[field] for field in EXPOSED_FIELDS} for event in events])


@public_bp.route('/calendar.ics')
def calendar_ics():
    """iCalendar feed of public events for calendar subscriptions."""
    start, end = _range_args()
    try:
        events = get_public_calendar(start, end)
    except ValueError:
        return api_error('Invalid date range', status=400)

    return Response(
        build_ical_feed(events),
        mimetype='text/calendar',
        headers={
            'Content-Disposition': 'inline; filename="pavilion-events.ics"',
            'Cache-Control': 'public, max-age=300'
        }
    )
