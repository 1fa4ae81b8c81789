"""
Tests for the payment ledger: manual settlement, card payments and gateway events.
"""

import pytest


@pytest.fixture
def approved_reservation(app, users, make_reservation):
    """An approved reservation with its three pending obligations."""
    from models.reservation_state import approve_request

    reservation_id = make_reservation()
    assert approve_request(reservation_id, users['manager'])['success']
    return reservation_id


def _obligation(reservation_id, code):
    from models.payment import get_payments_for_reservation
    return next(p for p in get_payments_for_reservation(reservation_id) if p['fee_type_code'] == code)


class TestManualPayments:
    """Test staff-recorded payments, waivers and refunds."""

    def test_record_cash_payment(self, app, users, approved_reservation):
        from models.payment import get_payment, record_manual_payment
        from models.reservation_note import get_notes

        deposit = _obligation(approved_reservation, 'security_deposit')
        result = record_manual_payment(deposit['id'], 'Cash', '2025-09-01', users['manager'])

        assert result['success'] is True
        assert 'Sep 01, 2025' in result['message']
        payment = get_payment(deposit['id'])
        assert payment['status'] == 'Paid'
        assert payment['payment_method'] == 'Cash'
        assert payment['payment_date'] == '2025-09-01'
        assert payment['paid_amount'] == 150.0
        assert payment['days_until_due'] is None
        assert any('Security Deposit payment received' in n['content']
                   for n in get_notes(approved_reservation))

    def test_card_is_not_a_manual_method(self, app, users, approved_reservation):
        from models.payment import record_manual_payment

        deposit = _obligation(approved_reservation, 'security_deposit')
        result = record_manual_payment(deposit['id'], 'Credit Card', None, users['manager'])

        assert result['success'] is False
        assert result['error_code'] == 'validation_error'

    def test_unknown_method_rejected(self, app, users, approved_reservation):
        from models.payment import record_manual_payment

        deposit = _obligation(approved_reservation, 'security_deposit')
        result = record_manual_payment(deposit['id'], 'Barter', None, users['manager'])
        assert 'Invalid payment method' in result['message']

    def test_requestor_cannot_record(self, app, users, approved_reservation):
        from models.payment import record_manual_payment

        deposit = _obligation(approved_reservation, 'security_deposit')
        result = record_manual_payment(deposit['id'], 'Cash', None, users['requestor'])
        assert result['error_code'] == 'permission_denied'

    def test_paid_obligation_cannot_be_paid_again(self, app, users, approved_reservation):
        from models.payment import record_manual_payment

        deposit = _obligation(approved_reservation, 'security_deposit')
        record_manual_payment(deposit['id'], 'Cash', None, users['manager'])
        result = record_manual_payment(deposit['id'], 'Check', None, users['manager'])

        assert result['success'] is False
        assert result['message'] == 'Only pending payments can be marked as paid'

    def test_waive_all_pending(self, app, users, approved_reservation):
        from models.payment import get_payments_for_reservation, record_manual_payment, waive_all

        deposit = _obligation(approved_reservation, 'security_deposit')
        record_manual_payment(deposit['id'], 'Cash', None, users['manager'])
        result = waive_all(approved_reservation, users['manager'])

        assert result['success'] is True
        assert result['data'] == {'waived_count': 2}
        statuses = sorted(p['status'] for p in get_payments_for_reservation(approved_reservation))
        assert statuses == ['Paid', 'Waived', 'Waived']

        again = waive_all(approved_reservation, users['manager'])
        assert again['message'] == 'No pending payments to waive'

    def test_waive_requires_approved(self, app, users, make_reservation):
        from models.payment import waive_all

        result = waive_all(make_reservation(), users['manager'])
        assert result['message'] == 'Can only waive fees for approved reservations'

    def test_partial_refund(self, app, users, approved_reservation):
        from models.payment import get_payment, record_manual_payment, record_refund

        deposit = _obligation(approved_reservation, 'security_deposit')
        record_manual_payment(deposit['id'], 'Cash', None, users['manager'])
        result = record_refund(deposit['id'], '100', 'Minor damage withheld', users['manager'])

        assert result['success'] is True
        payment = get_payment(deposit['id'])
        assert payment['status'] == 'Refunded'
        assert payment['refund_amount'] == 100.0
        assert payment['refund_notes'] == 'Minor damage withheld'

    def test_refund_cannot_exceed_payment(self, app, users, approved_reservation):
        from models.payment import record_manual_payment, record_refund

        deposit = _obligation(approved_reservation, 'security_deposit')
        record_manual_payment(deposit['id'], 'Cash', None, users['manager'])
        result = record_refund(deposit['id'], 500, None, users['manager'])
        assert result['message'] == 'Refund amount cannot exceed the amount paid'

    def test_refund_requires_paid(self, app, users, approved_reservation):
        from models.payment import record_refund

        deposit = _obligation(approved_reservation, 'security_deposit')
        result = record_refund(deposit['id'], None, None, users['manager'])
        assert result['message'] == 'Only paid payments can be refunded'


class TestCardPayments:
    """Test starting card payments."""

    def test_initiate_creates_transaction(self, app, users, approved_reservation):
        from models.payment import get_payment, initiate_payment

        fee = _obligation(approved_reservation, 'facility_fee')
        result = initiate_payment(fee['id'], users['requestor'])

        assert result['success'] is True
        assert result['data']['reused'] is False
        assert result['data']['amount'] == 150.0
        assert get_payment(fee['id'])['transaction_id'] == result['data']['transaction_id']

    def test_initiate_reuses_in_flight_transaction(self, app, users, approved_reservation):
        from models.payment import initiate_payment

        fee = _obligation(approved_reservation, 'facility_fee')
        first = initiate_payment(fee['id'], users['requestor'])
        second = initiate_payment(fee['id'], users['requestor'])

        assert second['success'] is True
        assert second['data']['reused'] is True
        assert second['data']['transaction_id'] == first['data']['transaction_id']

    def test_cleaning_fee_not_payable_by_card(self, app, users, approved_reservation):
        from models.payment import initiate_payment

        cleaning = _obligation(approved_reservation, 'cleaning_fee')
        result = initiate_payment(cleaning['id'], users['requestor'])

        assert result['success'] is False
        assert 'cannot be paid by card' in result['message']

    def test_only_requestor_may_pay(self, app, users, approved_reservation):
        from models.payment import initiate_payment

        fee = _obligation(approved_reservation, 'facility_fee')
        result = initiate_payment(fee['id'], users['manager'])
        assert result['error_code'] == 'permission_denied'


class TestGatewayEvents:
    """Test applying gateway transaction and refund events."""

    def _start(self, users, reservation_id, code='security_deposit'):
        from models.payment import initiate_payment

        obligation = _obligation(reservation_id, code)
        result = initiate_payment(obligation['id'], users['requestor'])
        return obligation['id'], result['data']['transaction_id']

    def test_success_marks_paid(self, app, users, approved_reservation):
        from models.payment import get_payment, on_gateway_transaction_update

        payment_id, transaction_id = self._start(users, approved_reservation)
        outcome = on_gateway_transaction_update(transaction_id, 'succeeded')

        assert outcome['applied'] is True
        payment = get_payment(payment_id)
        assert payment['status'] == 'Paid'
        assert payment['payment_method'] == 'Credit Card'
        assert payment['paid_amount'] == 150.0

    def test_success_replay_is_noop(self, app, users, approved_reservation):
        from models.payment import on_gateway_transaction_update
        from models.reservation_note import get_notes

        _, transaction_id = self._start(users, approved_reservation)
        on_gateway_transaction_update(transaction_id, 'succeeded')
        notes_before = len(get_notes(approved_reservation))

        outcome = on_gateway_transaction_update(transaction_id, 'succeeded')

        assert outcome['applied'] is False
        assert len(get_notes(approved_reservation)) == notes_before

    def test_failure_unlinks_transaction(self, app, users, approved_reservation):
        from models.payment import get_payment, initiate_payment, on_gateway_transaction_update

        payment_id, transaction_id = self._start(users, approved_reservation)
        outcome = on_gateway_transaction_update(transaction_id, 'failed')

        assert outcome['applied'] is True
        payment = get_payment(payment_id)
        assert payment['status'] == 'Pending'
        assert payment['transaction_id'] is None

        retry = initiate_payment(payment_id, users['requestor'])
        assert retry['data']['reused'] is False
        assert retry['data']['transaction_id'] != transaction_id

    def test_success_after_cancellation_still_recorded(self, app, users, approved_reservation):
        from models.payment import get_payment, on_gateway_transaction_update
        from models.reservation_state import cancel_request

        payment_id, transaction_id = self._start(users, approved_reservation)
        cancel_request(approved_reservation, users['manager'], 'Venue maintenance')

        outcome = on_gateway_transaction_update(transaction_id, 'succeeded')

        assert outcome['applied'] is True
        assert get_payment(payment_id)['status'] == 'Paid'

    def test_unknown_transaction_dropped(self, app):
        from models.payment import on_gateway_transaction_update

        outcome = on_gateway_transaction_update('txn_missing', 'succeeded')
        assert outcome == {'applied': False, 'message': 'Unknown transaction'}

    def test_unknown_status_ignored(self, app, users, approved_reservation):
        from models.payment import on_gateway_transaction_update

        _, transaction_id = self._start(users, approved_reservation)
        assert on_gateway_transaction_update(transaction_id, 'exploded')['applied'] is False

    def test_refunds_accumulate_without_double_counting(self, app, users, approved_reservation):
        from models.payment import get_payment, on_gateway_refund_update, on_gateway_transaction_update

        payment_id, transaction_id = self._start(users, approved_reservation)
        on_gateway_transaction_update(transaction_id, 'succeeded')

        first = on_gateway_refund_update(transaction_id, 're_1', 50, 'succeeded')
        second = on_gateway_refund_update(transaction_id, 're_2', 25, 'succeeded')
        replay = on_gateway_refund_update(transaction_id, 're_1', 50, 'succeeded')

        assert first['refund_total'] == 50.0
        assert second['refund_total'] == 75.0
        assert replay['refund_total'] == 75.0
        payment = get_payment(payment_id)
        assert payment['status'] == 'Refunded'
        assert payment['refund_amount'] == 75.0

    def test_pending_refund_not_applied(self, app, users, approved_reservation):
        from models.payment import get_payment, on_gateway_refund_update, on_gateway_transaction_update

        payment_id, transaction_id = self._start(users, approved_reservation)
        on_gateway_transaction_update(transaction_id, 'succeeded')
        outcome = on_gateway_refund_update(transaction_id, 're_1', 50, 'pending')

        assert outcome['applied'] is False
        assert get_payment(payment_id)['status'] == 'Paid'


class TestReconciliation:
    """Test ledger queries used by reports."""

    def test_paid_on_cancelled_listed(self, app, users, approved_reservation):
        from models.payment import find_paid_on_cancelled_reservations, record_manual_payment
        from models.reservation_state import cancel_request

        deposit = _obligation(approved_reservation, 'security_deposit')
        record_manual_payment(deposit['id'], 'Cash', None, users['manager'])
        cancel_request(approved_reservation, users['manager'], 'Rained out')

        rows = find_paid_on_cancelled_reservations()
        assert [row['id'] for row in rows] == [deposit['id']]

    def test_ledger_filters_by_event_date(self, app, users, approved_reservation):
        from models.payment import get_payment_ledger
        from models.reservation import get_reservation

        event_date = get_reservation(approved_reservation)['event_date']
        assert len(get_payment_ledger(event_date, event_date)) == 3
        assert get_payment_ledger(end_date='2000-01-01') == []
