"""
Payment API routes.
Endpoints for payment obligations: manual settlement, waivers, refunds and
card payment initiation.
"""

from flask import request
from flask_login import login_required, current_user

from models.payment import (
    get_payment,
    get_payments_for_reservation,
    initiate_payment,
    record_manual_payment,
    record_refund,
    waive_all
)
from models.reservation import get_reservation
from models.reservation_status import MANUAL_PAYMENT_METHODS
from utils.api_response import api_success, api_error, api_result
from utils.decorators import permission_required
from utils.messages import get_message
from utils.permissions import has_permission


def _can_see_payment(requestor_id: int) -> bool:
    return requestor_id == current_user.id or has_permission(current_user, 'venue.payments.record')


def register_routes(bp):
    """Register payment routes on the blueprint."""

    @bp.route('/payment-methods', methods=['GET'])
    @login_required
    def payment_methods():
        """Methods staff may record by hand."""
        return api_success(data=[method.value for method in MANUAL_PAYMENT_METHODS])

    @bp.route('/reservations/<int:reservation_id>/payments', methods=['GET'])
    @login_required
    @permission_required('venue.reservations.view')
    def list_payments(reservation_id):
        """Get the payment obligations of a reservation."""
        reservation = get_reservation(reservation_id)
        if not reservation or not _can_see_payment(reservation['requestor_id']):
            return api_error(get_message('reservation_not_found'), status=404)
        return api_success(data=get_payments_for_reservation(reservation_id))

    @bp.route('/payments/<int:payment_id>', methods=['GET'])
    @login_required
    def get_payment_detail(payment_id):
        """Get a single obligation."""
        payment = get_payment(payment_id)
        if not payment or not _can_see_payment(payment['requestor_id']):
            return api_error(get_message('payment_not_found'), status=404)
        return api_success(data=payment)

    @bp.route('/payments/<int:payment_id>/record', methods=['POST'])
    @login_required
    @permission_required('venue.payments.record')
    def record_payment(payment_id):
        """
        Record an in-person payment.

        Request body:
            method: Cash, Check, Money Order or CashApp (required)
            payment_date: Date received, YYYY-MM-DD (optional, defaults to today)
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        if not data.get('method'):
            return api_error(get_message('field_required', field='Payment method'), status=400)
        return api_result(record_manual_payment(
            payment_id, data['method'], data.get('payment_date'), current_user
        ))

    @bp.route('/payments/<int:payment_id>/refund', methods=['POST'])
    @login_required
    @permission_required('venue.payments.record')
    def refund_payment(payment_id):
        """
        Record a refund issued outside the card processor.

        Request body:
            amount: Amount refunded (optional, defaults to the amount paid)
            notes: Refund notes (optional)
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        return api_result(record_refund(payment_id, data.get('amount'), data.get('notes'), current_user))

    @bp.route('/payments/<int:payment_id>/pay', methods=['POST'])
    @login_required
    @permission_required('venue.payments.pay')
    def pay(payment_id):
        """Start a card payment; returns the gateway transaction ID."""
        return api_result(initiate_payment(payment_id, current_user))

    @bp.route('/reservations/<int:reservation_id>/waive', methods=['POST'])
    @login_required
    @permission_required('venue.payments.record')
    def waive(reservation_id):
        """Waive every pending obligation of an approved reservation."""
        return api_result(waive_all(reservation_id, current_user))
