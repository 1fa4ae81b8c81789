"""
Workflow error taxonomy and the result boundary.

Model functions raise these errors; the ``workflow_action`` decorator turns
them into structured result dicts so callers always receive a terminal
outcome:

    {"success": false, "message": "...", "refresh": false, "error_code": "..."}
"""

import logging
from functools import wraps

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    """Base class for workflow errors."""

    error_code = 'error'
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReservationError, ValueError):
    """Bad input shape or range. Raised before any state change."""

    error_code = 'validation_error'
    http_status = 400


class StateTransitionError(ReservationError):
    """Illegal transition for the current status."""

    error_code = 'invalid_transition'
    http_status = 409


class NotApplicableError(StateTransitionError):
    """Transition re-invoked on a record already in the target state."""

    error_code = 'not_applicable'


class SlotConflictError(ReservationError):
    """Confirmation would overlap an existing confirmed interval."""

    error_code = 'slot_conflict'
    http_status = 409

    def __init__(self, message: str, conflicting_reservation_id: int | None = None):
        super().__init__(message)
        self.conflicting_reservation_id = conflicting_reservation_id


class PermissionDeniedError(ReservationError):
    """Actor lacks the required role or permission."""

    error_code = 'permission_denied'
    http_status = 403


class NotFoundError(ReservationError):
    """Referenced record does not exist."""

    error_code = 'not_found'
    http_status = 404


def action_result(success: bool, message: str, refresh: bool = False,
                  data: dict | None = None, error_code: str | None = None) -> dict:
    """
    Build a workflow result dict.

    Args:
        success: Whether the action took effect
        message: Human-readable outcome
        refresh: Whether the caller should reload the record
        data: Optional payload
        error_code: Error code for failures

    Returns:
        Result dict
    """
    result = {'success': success, 'message': message, 'refresh': refresh}
    if data is not None:
        result['data'] = data
    if error_code:
        result['error_code'] = error_code
    return result


def error_result(error: ReservationError) -> dict:
    """Convert a workflow error into a failure result."""
    data = None
    if isinstance(error, SlotConflictError) and error.conflicting_reservation_id:
        data = {'conflicting_reservation_id': error.conflicting_reservation_id}
    return action_result(False, error.message, data=data, error_code=error.error_code)


def workflow_action(func):
    """
    Decorator: never let an exception escape a user-facing operation.

    Workflow errors become failure results. Anything else is logged with
    its traceback and reported as an internal error; the transaction that
    raised it has already been rolled back by ``write_transaction``.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ReservationError as e:
            logger.info('%s rejected: %s', func.__name__, e.message)
            return error_result(e)
        except Exception:
            logger.error('%s failed unexpectedly', func.__name__, exc_info=True)
            return action_result(
                False, 'An unexpected error occurred. Please try again.',
                error_code='internal_error'
            )
    return wrapper
