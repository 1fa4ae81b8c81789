"""
Reservation API routes.
Endpoints for submitting requests, moving them through the approval
workflow, manager events and reservation notes.
"""

import logging
from flask import request
from flask_login import login_required, current_user

from models.payment import get_payments_for_reservation
from models.reservation import (
    delete_request,
    get_reservation,
    get_reservations,
    submit_request,
    update_request_details
)
from models.reservation_note import add_note, get_notes
from models.reservation_state import (
    approve_request,
    cancel_request,
    close_request,
    complete_request,
    create_manager_event,
    deny_request,
    get_allowed_transitions
)
from utils.api_response import api_success, api_error, api_exception, api_result
from utils.decorators import permission_required
from utils.errors import ReservationError
from utils.messages import get_message
from utils.permissions import has_permission
from utils.validators import sanitize_input

logger = logging.getLogger(__name__)


def _is_reviewer() -> bool:
    return has_permission(current_user, 'venue.reservations.review')


def _load_visible(reservation_id: int):
    """Reservation if the current user may see it, else None."""
    reservation = get_reservation(reservation_id)
    if reservation is None:
        return None
    if reservation['requestor_id'] != current_user.id and not _is_reviewer():
        return None
    return reservation


def register_routes(bp):
    """Register reservation routes on the blueprint."""

    @bp.route('/reservations', methods=['GET'])
    @login_required
    @permission_required('venue.reservations.view')
    def list_reservations():
        """
        List reservation requests.

        Requestors only see their own requests.

        Query params:
            status: Filter by status
            from: Only requests ending after this time (ISO-8601)
            to: Only requests starting before this time (ISO-8601)

        Returns:
            JSON list of reservations
        """
        requestor_id = None if _is_reviewer() else current_user.id

        try:
            reservations = get_reservations(
                status=request.args.get('status') or None,
                requestor_id=requestor_id,
                range_start=request.args.get('from') or None,
                range_end=request.args.get('to') or None
            )
        except ValueError as e:
            return api_error(f'Invalid filter: {e}', status=400)

        return api_success(data=reservations, count=len(reservations))

    @bp.route('/reservations/<int:reservation_id>', methods=['GET'])
    @login_required
    @permission_required('venue.reservations.view')
    def get_reservation_detail(reservation_id):
        """Get a reservation with its payments, notes and allowed transitions."""
        reservation = _load_visible(reservation_id)
        if not reservation:
            return api_error(get_message('reservation_not_found'), status=404)

        reservation['payments'] = get_payments_for_reservation(reservation_id)
        reservation['notes'] = get_notes(reservation_id)
        reservation['allowed_transitions'] = [
            status.value for status in get_allowed_transitions(reservation['status'])
        ]
        return api_success(data=reservation)

    @bp.route('/reservations', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.create')
    def create_reservation():
        """
        Submit a reservation request.

        Request body:
            requestor_name, requestor_address, requestor_phone (required)
            requestor_email, organization_name (optional)
            event_type, starts_at, ends_at, attendee_count (required)
            attendee_ages (optional)
            is_food_served, is_public_event, is_fundraiser, is_admission_charged
            policy_agreed (must be true)

        Returns:
            JSON with the new reservation
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error('Request body required', status=400)
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)

        try:
            reservation_id = submit_request(current_user.id, data)
        except ReservationError as e:
            return api_exception(e)

        return api_success(
            data=get_reservation(reservation_id),
            message=get_message('request_submitted'),
            status=201
        )

    @bp.route('/reservations/<int:reservation_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('venue.reservations.view')
    def update_reservation(reservation_id):
        """Edit descriptive fields of a request."""
        data = request.get_json(silent=True)
        if not data:
            return api_error('Request body required', status=400)
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        return api_result(update_request_details(reservation_id, data, current_user))

    @bp.route('/reservations/<int:reservation_id>', methods=['DELETE'])
    @login_required
    @permission_required('venue.reservations.delete')
    def remove_reservation(reservation_id):
        """Hard-delete a request (administrators)."""
        return api_result(delete_request(reservation_id, current_user))

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    @bp.route('/reservations/<int:reservation_id>/approve', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def approve(reservation_id):
        """Approve a pending request."""
        return api_result(approve_request(reservation_id, current_user))

    @bp.route('/reservations/<int:reservation_id>/deny', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def deny(reservation_id):
        """
        Deny a pending request.

        Request body:
            reason: Denial reason (required)
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        return api_result(deny_request(reservation_id, current_user, data.get('reason')))

    @bp.route('/reservations/<int:reservation_id>/cancel', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def cancel(reservation_id):
        """
        Cancel a pending or approved request.

        Request body:
            reason: Cancellation reason (required)
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        return api_result(cancel_request(reservation_id, current_user, data.get('reason')))

    @bp.route('/reservations/<int:reservation_id>/complete', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def complete(reservation_id):
        """Mark an approved event as completed."""
        return api_result(complete_request(reservation_id, current_user))

    @bp.route('/reservations/<int:reservation_id>/close', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def close(reservation_id):
        """Close a completed reservation."""
        return api_result(close_request(reservation_id, current_user))

    @bp.route('/manager-events', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def manager_event():
        """
        Book the pavilion for a park event, approved immediately.

        Request body:
            event_type, starts_at, ends_at, attendee_count (required)
            requestor_name, requestor_phone, organization_name,
            is_public_event (optional)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error('Request body required', status=400)
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        return api_result(create_manager_event(current_user, data), success_status=201)

    # =========================================================================
    # NOTES
    # =========================================================================

    @bp.route('/reservations/<int:reservation_id>/notes', methods=['GET'])
    @login_required
    @permission_required('venue.reservations.view')
    def list_notes(reservation_id):
        """Get the notes of a reservation."""
        if not _load_visible(reservation_id):
            return api_error(get_message('reservation_not_found'), status=404)
        return api_success(data=get_notes(reservation_id))

    @bp.route('/reservations/<int:reservation_id>/notes', methods=['POST'])
    @login_required
    @permission_required('venue.reservations.review')
    def create_note(reservation_id):
        """
        Add a staff note.

        Request body:
            content: Note text (required)
        """
        if not get_reservation(reservation_id):
            return api_error(get_message('reservation_not_found'), status=404)

        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        content = sanitize_input(data.get('content'), 2000)
        if not content:
            return api_error(get_message('field_required', field='Note'), status=400)

        note_id = add_note(reservation_id, content, note_type='staff', author_id=current_user.id)
        logger.info('Staff note %s added to reservation %s', note_id, reservation_id)
        return api_success(data={'id': note_id}, status=201)
