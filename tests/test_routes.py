"""
Test HTTP routes: authentication, reservation workflow, payments, webhooks,
public calendar and reports.
"""

WEBHOOK_HEADERS = {'X-Webhook-Secret': 'test-webhook-secret'}


class TestHealthAndAuth:
    """Test health check and authentication routes."""

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'
        assert response.get_json()['database'] is True

    def test_index_redirects_to_calendar(self, client):
        response = client.get('/')
        assert response.status_code == 302
        assert '/public/calendar' in response.headers['Location']

    def test_login_invalid_credentials(self, client):
        response = client.post('/auth/login', json={'username': 'admin', 'password': 'wrong'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid username or password'

    def test_login_missing_fields(self, client):
        response = client.post('/auth/login', json={'username': 'admin'})
        assert response.status_code == 400
        assert 'password' in response.get_json()['errors']

    def test_me_lists_permissions(self, authenticated_client):
        response = authenticated_client.get('/auth/me')
        data = response.get_json()['data']
        assert data['username'] == 'admin'
        assert data['role'] == 'admin'
        assert 'venue.automation.run' in data['permissions']

    def test_anonymous_rejected(self, client):
        response = client.get('/venue/api/reservations')
        assert response.status_code == 401
        assert response.get_json()['success'] is False


class TestReservationRoutes:
    """Test the reservation workflow over HTTP."""

    def test_submit_request(self, requestor_client, reservation_details):
        response = requestor_client.post('/venue/api/reservations', json=reservation_details())

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['status'] == 'Pending'
        assert data['requestor_email'] == 'jordan@example.com'

        listing = requestor_client.get('/venue/api/reservations').get_json()
        assert listing['count'] == 1

    def test_submit_short_notice_rejected(self, requestor_client, reservation_details):
        response = requestor_client.post('/venue/api/reservations', json=reservation_details(days_ahead=3))

        assert response.status_code == 400
        assert response.get_json()['error_code'] == 'validation_error'
        assert '10 days' in response.get_json()['error']

    def test_submit_over_capacity_rejected(self, requestor_client, reservation_details):
        response = requestor_client.post('/venue/api/reservations',
                                         json=reservation_details(attendee_count=120))
        assert response.status_code == 400

    def test_submit_non_object_rejected(self, requestor_client):
        response = requestor_client.post('/venue/api/reservations', json=[1, 2])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Request body must be a JSON object'

    def test_cancel_non_object_rejected(self, manager_client, make_reservation):
        reservation_id = make_reservation()
        response = manager_client.post(f'/venue/api/reservations/{reservation_id}/cancel',
                                       json=['Requested by phone'])
        assert response.status_code == 400

    def test_submit_notifies_managers(self, requestor_client, reservation_details):
        from services.notification_service import get_notifications

        requestor_client.post('/venue/api/reservations', json=reservation_details())
        assert len(get_notifications(template_name='reservation_request_submitted')) == 2

    def test_requestor_cannot_approve(self, requestor_client, make_reservation):
        reservation_id = make_reservation()
        response = requestor_client.post(f'/venue/api/reservations/{reservation_id}/approve')
        assert response.status_code == 403

    def test_requestor_cannot_see_others(self, requestor_client, users, make_reservation):
        reservation_id = make_reservation(requestor=users['manager'])
        response = requestor_client.get(f'/venue/api/reservations/{reservation_id}')
        assert response.status_code == 404

    def test_manager_approves(self, manager_client, make_reservation):
        reservation_id = make_reservation()

        response = manager_client.post(f'/venue/api/reservations/{reservation_id}/approve')
        assert response.status_code == 200
        assert response.get_json()['data']['facility_fee'] == 150.0

        detail = manager_client.get(f'/venue/api/reservations/{reservation_id}').get_json()['data']
        assert detail['status'] == 'Approved'
        assert len(detail['payments']) == 3
        assert detail['allowed_transitions'] == ['Cancelled', 'Completed']

        again = manager_client.post(f'/venue/api/reservations/{reservation_id}/approve')
        assert again.status_code == 409
        assert again.get_json()['error_code'] == 'not_applicable'

    def test_deny_requires_reason(self, manager_client, make_reservation):
        reservation_id = make_reservation()
        response = manager_client.post(f'/venue/api/reservations/{reservation_id}/deny', json={})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'A denial reason is required'

    def test_cancel_with_reason(self, manager_client, make_reservation):
        reservation_id = make_reservation()
        response = manager_client.post(f'/venue/api/reservations/{reservation_id}/cancel',
                                       json={'reason': 'Requested by phone'})
        assert response.status_code == 200
        assert response.get_json()['data']['cancelled_payments'] == 0

    def test_manager_event(self, manager_client, reservation_details):
        response = manager_client.post('/venue/api/manager-events', json=reservation_details(
            requestor_name=None, requestor_address=None, requestor_phone=None,
            is_public_event=True, organization_name='Mott Park Association'
        ))
        assert response.status_code == 201
        assert response.get_json()['data']['reservation_id']

    def test_staff_note(self, manager_client, make_reservation):
        reservation_id = make_reservation()
        response = manager_client.post(f'/venue/api/reservations/{reservation_id}/notes',
                                       json={'content': 'Called to confirm tables'})
        assert response.status_code == 201

        notes = manager_client.get(f'/venue/api/reservations/{reservation_id}/notes').get_json()['data']
        assert notes[-1]['note_type'] == 'staff'
        assert notes[-1]['author_username'] == 'manager'

    def test_only_admin_deletes(self, manager_client, make_reservation):
        reservation_id = make_reservation()
        response = manager_client.delete(f'/venue/api/reservations/{reservation_id}')
        assert response.status_code == 403

    def test_admin_delete_cascades(self, authenticated_client, users, make_reservation):
        from models.confirmed_interval import get_confirmed_intervals
        from models.payment import get_payments_for_reservation
        from models.reservation import get_reservation
        from models.reservation_state import approve_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])

        response = authenticated_client.delete(f'/venue/api/reservations/{reservation_id}')

        assert response.status_code == 200
        assert get_reservation(reservation_id) is None
        assert get_payments_for_reservation(reservation_id) == []
        assert get_confirmed_intervals() == []


class TestPaymentRoutes:
    """Test payment routes and gateway webhooks."""

    def _approve(self, users, make_reservation):
        from models.payment import get_payments_for_reservation
        from models.reservation_state import approve_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])
        return {p['fee_type_code']: p['id'] for p in get_payments_for_reservation(reservation_id)}

    def test_record_payment(self, manager_client, users, make_reservation):
        payments = self._approve(users, make_reservation)
        response = manager_client.post(f"/venue/api/payments/{payments['security_deposit']}/record",
                                       json={'method': 'Money Order'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'Paid'

    def test_record_requires_method(self, manager_client, users, make_reservation):
        payments = self._approve(users, make_reservation)
        response = manager_client.post(f"/venue/api/payments/{payments['security_deposit']}/record", json={})
        assert response.status_code == 400

    def test_card_payment_and_webhook(self, requestor_client, users, make_reservation):
        from models.payment import get_payment

        payments = self._approve(users, make_reservation)
        response = requestor_client.post(f"/venue/api/payments/{payments['facility_fee']}/pay")
        assert response.status_code == 200
        transaction_id = response.get_json()['data']['transaction_id']

        hook = requestor_client.post('/webhooks/payments/transactions', headers=WEBHOOK_HEADERS,
                                     json={'transaction_id': transaction_id, 'status': 'succeeded'})
        assert hook.status_code == 200
        assert hook.get_json()['data']['applied'] is True
        assert get_payment(payments['facility_fee'])['status'] == 'Paid'

    def test_cleaning_fee_pay_rejected(self, requestor_client, users, make_reservation):
        payments = self._approve(users, make_reservation)
        response = requestor_client.post(f"/venue/api/payments/{payments['cleaning_fee']}/pay")
        assert response.status_code == 400

    def test_webhook_requires_secret(self, client):
        response = client.post('/webhooks/payments/transactions',
                               json={'transaction_id': 'txn_x', 'status': 'succeeded'})
        assert response.status_code == 401

    def test_webhook_non_object_rejected(self, client):
        response = client.post('/webhooks/payments/transactions', headers=WEBHOOK_HEADERS,
                               json=['txn_x', 'succeeded'])
        assert response.status_code == 400

    def test_webhook_unknown_transaction_acknowledged(self, client):
        response = client.post('/webhooks/payments/transactions', headers=WEBHOOK_HEADERS,
                               json={'transaction_id': 'txn_missing', 'status': 'succeeded'})
        assert response.status_code == 200
        assert response.get_json()['data']['applied'] is False

    def test_refund_webhook_validates_body(self, client):
        response = client.post('/webhooks/payments/refunds', headers=WEBHOOK_HEADERS,
                               json={'transaction_id': 'txn_x'})
        assert response.status_code == 400
        assert 'refund_id' in response.get_json()['error']


class TestPublicRoutes:
    """Test the unauthenticated calendar routes."""

    def test_calendar_json(self, client, users, make_reservation):
        from models.reservation_state import approve_request

        reservation_id = make_reservation()
        approve_request(reservation_id, users['manager'])

        events = client.get('/public/calendar').get_json()['data']
        assert events[0]['id'] == reservation_id
        assert events[0]['display_name'] == 'Private Event'
        assert 'requestor_email' not in events[0]

    def test_calendar_ics(self, client):
        response = client.get('/public/calendar.ics')
        assert response.status_code == 200
        assert response.mimetype == 'text/calendar'
        assert response.get_data(as_text=True).startswith('BEGIN:VCALENDAR')

    def test_calendar_bad_range(self, client):
        response = client.get('/public/calendar?start=not-a-date')
        assert response.status_code == 400


class TestAdminRoutes:
    """Test holidays, automation and reports."""

    def test_holidays_for_year(self, manager_client):
        response = manager_client.get('/venue/api/holidays?year=2025')
        holidays = response.get_json()['data']
        assert {'name': 'Thanksgiving', 'date': '2025-11-27'} in holidays

    def test_holiday_check(self, manager_client):
        data = manager_client.get('/venue/api/holidays/check?date=2025-07-04').get_json()['data']
        assert data['is_holiday_or_weekend'] is True
        assert data['tier'] == 'premium'
        assert data['facility_fee'] == 300.0

    def test_manager_cannot_edit_holiday_rules(self, manager_client):
        response = manager_client.post('/venue/api/holiday-rules',
                                       json={'display_name': 'X', 'rule_type': 'fixed', 'month': 1, 'day': 2})
        assert response.status_code == 403

    def test_admin_runs_automation(self, authenticated_client):
        response = authenticated_client.post('/venue/api/automation/run', json={'date': '2025-06-01'})
        assert response.status_code == 200
        assert response.get_json()['data']['success'] is True

        runs = authenticated_client.get('/venue/api/automation/runs').get_json()['data']
        assert runs[0]['triggered_by'] == 'admin'

    def test_manager_cannot_run_automation(self, manager_client):
        response = manager_client.post('/venue/api/automation/run', json={})
        assert response.status_code == 403

    def test_reconciliation(self, manager_client, users, make_reservation):
        from models.reservation_state import approve_request

        approve_request(make_reservation(), users['manager'])
        data = manager_client.get('/venue/api/reports/reconciliation').get_json()['data']
        assert data['needs_refund_review'] == []
        assert data['summary']

    def test_ledger_export(self, manager_client, users, make_reservation):
        from models.reservation_state import approve_request

        approve_request(make_reservation(), users['manager'])
        response = manager_client.get('/venue/api/reports/payments/export')

        assert response.status_code == 200
        assert response.mimetype == (
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )
        assert response.data[:2] == b'PK'
