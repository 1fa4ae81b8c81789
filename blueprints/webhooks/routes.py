"""
Payment gateway webhook routes.
The processor posts transaction and refund status changes here. Requests are
authenticated with the shared secret header; unknown transactions are
acknowledged and dropped so the processor does not retry them forever.
"""

import logging
from flask import Blueprint, request

from models.payment import on_gateway_refund_update, on_gateway_transaction_update
from utils.api_response import api_success, api_error
from utils.decorators import webhook_signature_required

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)


@webhooks_bp.route('/payments/transactions', methods=['POST'])
@webhook_signature_required
def transaction_event():
    """
    Transaction status change.

    Request body:
        transaction_id: Gateway transaction ID (required)
        status: pending, processing, succeeded, failed or canceled (required)
        amount: Amount settled (optional)
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return api_error('Request body must be a JSON object', status=400)
    if not data.get('transaction_id') or not data.get('status'):
        return api_error('transaction_id and status are required', status=400)

    result = on_gateway_transaction_update(data['transaction_id'], data['status'], data.get('amount'))
    return api_success(data=result)


@webhooks_bp.route('/payments/refunds', methods=['POST'])
@webhook_signature_required
def refund_event():
    """
    Refund status change.

    Request body:
        transaction_id: Original payment transaction (required)
        refund_id: Gateway refund ID (required)
        amount: Amount of this refund (required)
        status: Refund status (required)
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return api_error('Request body must be a JSON object', status=400)
    missing = [field for field in ('transaction_id', 'refund_id', 'amount', 'status') if data.get(field) is None]
    if missing:
        return api_error(f"Missing fields: {', '.join(missing)}", status=400)

    try:
        amount = float(data['amount'])
    except (TypeError, ValueError):
        return api_error('amount must be a number', status=400)

    result = on_gateway_refund_update(data['transaction_id'], data['refund_id'], amount, data['status'])
    return api_success(data=result)
