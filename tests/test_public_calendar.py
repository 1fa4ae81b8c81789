"""
Tests for the public calendar projection and iCalendar feed.
"""


def _public_row(reservation_id):
    from database import get_db
    row = get_db().execute('SELECT * FROM public_calendar_events WHERE id = ?',
                           (reservation_id,)).fetchone()
    return dict(row) if row else None


class TestProjection:
    """Test which reservations appear and what they expose."""

    def test_pending_not_projected(self, app, make_reservation):
        reservation_id = make_reservation(is_public_event=True)
        assert _public_row(reservation_id) is None

    def test_private_event_hides_details(self, app, users, make_reservation):
        from models.reservation_state import approve_request

        reservation_id = make_reservation(organization_name='Smith Family')
        approve_request(reservation_id, users['manager'])

        row = _public_row(reservation_id)
        assert row['display_name'] == 'Private Event'
        assert row['event_type'] == 'Private Event'
        assert row['organization_name'] is None
        assert row['contact_name'] is None
        assert row['contact_phone'] is None

    def test_public_event_exposes_details(self, app, users, make_reservation):
        from models.reservation_state import approve_request

        reservation_id = make_reservation(is_public_event=True, organization_name='Friends of Mott Park',
                                          event_type='Community Picnic', is_admission_charged=True)
        approve_request(reservation_id, users['manager'])

        row = _public_row(reservation_id)
        assert row['display_name'] == 'Friends of Mott Park - Community Picnic'
        assert row['contact_name'] == 'Jordan Requestor'
        assert row['contact_phone'] == '(810) 555-0199'
        assert row['is_admission_charged'] == 1

    def test_edit_resyncs(self, app, users, make_reservation):
        from models.reservation import update_request_details
        from models.reservation_state import approve_request

        reservation_id = make_reservation(is_public_event=True)
        approve_request(reservation_id, users['manager'])
        update_request_details(reservation_id, {'is_public_event': False}, users['manager'])

        assert _public_row(reservation_id)['display_name'] == 'Private Event'

    def test_removed_on_cancel(self, app, users, make_reservation):
        from models.reservation_state import approve_request, cancel_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])
        cancel_request(reservation_id, users['manager'], 'Storm warning')

        assert _public_row(reservation_id) is None

    def test_completed_stays_until_closed(self, app, users, make_reservation):
        from models.payment import get_deposit_payment, waive_all
        from models.reservation_state import approve_request, close_request, complete_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])
        waive_all(reservation_id, users['manager'])
        complete_request(reservation_id, users['manager'])
        assert _public_row(reservation_id) is not None

        assert get_deposit_payment(reservation_id)['status'] == 'Waived'
        close_request(reservation_id, users['manager'])
        assert _public_row(reservation_id) is None


class TestQueries:
    """Test range queries."""

    def test_range_filter(self, app, users, make_reservation):
        from models.public_calendar import get_public_calendar
        from models.reservation import get_reservation
        from models.reservation_state import approve_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])
        starts_at = get_reservation(reservation_id)['starts_at']

        events = get_public_calendar()
        assert [e['id'] for e in events] == [reservation_id]
        assert events[0]['start'].startswith(starts_at[:10] + 'T12:00:00')
        assert get_public_calendar('2000-01-01T00:00:00', '2000-01-02T00:00:00') == []


class TestICalFeed:
    """Test the iCalendar rendering."""

    def test_feed_structure(self, app, users, make_reservation):
        from models.public_calendar import build_ical_feed, get_public_calendar
        from models.reservation_state import approve_request

        public_id = make_reservation(is_public_event=True, organization_name='Flint Garden Club',
                                     event_type='Plant Swap', days_ahead=60)
        private_id = make_reservation(days_ahead=120)
        approve_request(public_id, users['manager'])
        approve_request(private_id, users['manager'])

        feed = build_ical_feed(get_public_calendar())

        assert feed.startswith('BEGIN:VCALENDAR\r\n')
        assert feed.endswith('END:VCALENDAR\r\n')
        assert '\n' not in feed.replace('\r\n', '')
        assert f'UID:event-{public_id}@mottpark.org' in feed
        assert f'UID:event-{private_id}@mottpark.org' in feed
        assert 'SUMMARY:Flint Garden Club - Plant Swap' in feed
        assert 'DESCRIPTION:Hosted by: Flint Garden Club\\nType: Plant Swap' in feed
        assert feed.count('DESCRIPTION:') == 1
        assert feed.count('BEGIN:VEVENT') == 2

    def test_times_in_utc(self, app, users, make_reservation):
        from models.public_calendar import build_ical_feed, get_public_calendar
        from models.reservation_state import approve_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])

        feed = build_ical_feed(get_public_calendar())
        dtstart = next(line for line in feed.split('\r\n') if line.startswith('DTSTART:'))
        # Noon in Detroit is 16:00 or 17:00 UTC
        assert dtstart.endswith(('T160000Z', 'T170000Z'))

    def test_escaping_and_folding(self, app):
        from models.public_calendar import _escape_text, _fold

        assert _escape_text('a,b;c\nd') == 'a\\,b\\;c\\nd'
        parts = _fold('SUMMARY:' + 'x' * 100)
        assert len(parts) == 2
        assert all(len(part.encode('utf-8')) <= 75 for part in parts)
        assert parts[1].startswith(' ')
