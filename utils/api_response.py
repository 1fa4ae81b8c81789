"""
Standardized API response helpers.

Provides consistent JSON response format across all API endpoints:

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "Human readable message"}
    Warning:  {"success": true, "data": {...}, "warning": "..."}

Workflow results ({success, message, refresh, data?, error_code?}) are
passed through ``api_result`` which picks the HTTP status from the error code.

Usage:
    from utils.api_response import api_success, api_error, api_result

    return api_success(data={'id': 1}, message='Created')
    return api_error('Data required', status=400)
    return api_result(approve_request(reservation_id, current_user))
"""

from flask import jsonify
from typing import Any

RESULT_STATUS_CODES = {
    'validation_error': 400,
    'permission_denied': 403,
    'not_found': 404,
    'invalid_transition': 409,
    'not_applicable': 409,
    'slot_conflict': 409,
    'internal_error': 500,
}


def api_success(
    data: dict | list | None = None,
    message: str | None = None,
    warning: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Build a standardized success JSON response.

    Args:
        data: Optional dict or list to include as 'data' key.
        message: Optional success message.
        warning: Optional warning message.
        status: HTTP status code (default 200).
        **extra_fields: Additional top-level fields to include in the response.

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': True}

    if data is not None:
        response['data'] = data

    if message:
        response['message'] = message

    if warning:
        response['warning'] = warning

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """
    Build a standardized error JSON response.

    Args:
        error: Error message.
        status: HTTP status code (default 400).
        **extra_fields: Additional top-level fields (e.g., error_code, errors).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': False, 'error': error}

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_result(result: dict, success_status: int = 200) -> tuple:
    """
    Convert a workflow result dict into a JSON response.

    Args:
        result: Dict with success, message, refresh and optional data/error_code
        success_status: Status code used when the action succeeded

    Returns:
        Tuple of (Response, status_code)
    """
    if result.get('success'):
        return jsonify(result), success_status

    status = RESULT_STATUS_CODES.get(result.get('error_code'), 400)
    response = dict(result)
    response['error'] = result.get('message')
    return jsonify(response), status


def api_exception(error) -> tuple:
    """
    Build an error response from a workflow error raised outside a workflow action.

    Args:
        error: ReservationError instance

    Returns:
        Tuple of (Response, status_code)
    """
    return api_error(error.message, status=error.http_status, error_code=error.error_code)
