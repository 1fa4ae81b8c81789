"""
Centralized user-facing messages.
Workflow results and API errors read their text from here.
"""

MESSAGES = {
    # Auth
    'login_success': 'Welcome {name}',
    'logout_success': 'You have been logged out',
    'invalid_credentials': 'Invalid username or password',
    'account_disabled': 'Your account has been disabled. Contact an administrator.',
    'permission_denied': 'You do not have permission to perform this action',

    # Lookups
    'reservation_not_found': 'Reservation request not found',
    'payment_not_found': 'Payment record not found',
    'holiday_rule_not_found': 'Holiday rule not found',

    # Submission
    'request_submitted': 'Reservation request submitted. A manager will review it shortly.',
    'manager_event_created': 'Manager event created and approved. Facility fee: {fee}.',
    'request_updated': 'Reservation request updated',
    'request_deleted': 'Reservation request deleted',
    'policy_required': 'You must agree to the pavilion rental policy',
    'advance_notice': 'Requests must be submitted at least {days} days before the event',
    'capacity_exceeded': 'Attendee count must be between 1 and {capacity}',
    'invalid_interval': 'Event end time must be after the start time',
    'invalid_phone': 'Invalid phone number format',
    'invalid_email': 'Invalid email format',
    'field_required': '{field} is required',
    'time_slot_locked': 'The time slot can only be changed while the request is pending',

    # Transitions
    'approved': 'Request approved! Facility fee: {fee}. Payment records have been created.',
    'denied': 'Request has been denied. The requestor will be notified.',
    'cancelled': 'Request has been cancelled. The requestor will be notified.',
    'cancelled_with_payments': (
        'Request cancelled. {cancelled} pending payment(s) cancelled. '
        'Note: {paid} payment(s) may require refund processing.'
    ),
    'cancelled_paid_only': 'Request cancelled. Note: {paid} payment(s) may require refund processing.',
    'cancelled_pending_only': 'Request cancelled. {cancelled} pending payment(s) cancelled. The requestor will be notified.',
    'completed': 'Event marked as completed. Please complete the post-event assessment.',
    'closed': 'Reservation closed successfully.',
    'already_in_status': 'Reservation is already {status}',
    'only_pending_approve': 'Only pending requests can be approved',
    'only_pending_deny': 'Only pending requests can be denied',
    'only_pending_or_approved_cancel': 'Only pending or approved requests can be cancelled',
    'only_approved_complete': 'Only approved requests can be marked as completed',
    'only_completed_close': 'Only completed requests can be closed',
    'event_not_ended': 'The event has not ended yet',
    'denial_reason_required': 'A denial reason is required',
    'cancellation_reason_required': 'A cancellation reason is required',
    'deposit_still_paid': (
        'Security deposit must be refunded or waived before closing. '
        'Please process the deposit first.'
    ),
    'only_approvers': 'Only managers can review reservation requests',
    'only_admin_delete': 'Only administrators can delete reservation requests',
    'slot_conflict': 'This time slot overlaps confirmed reservation #{conflicting_id}',

    # Payments
    'payment_recorded': 'Payment recorded as {method} on {date}',
    'invalid_payment_method': 'Invalid payment method: {method}',
    'only_pending_payable': 'Only pending payments can be marked as paid',
    'only_managers_record': 'Only managers can record manual payments',
    'fees_waived': '{count} payment(s) waived successfully',
    'no_pending_to_waive': 'No pending payments to waive',
    'waive_requires_approved': 'Can only waive fees for approved reservations',
    'refund_recorded': 'Refund of {amount} recorded',
    'only_paid_refundable': 'Only paid payments can be refunded',
    'refund_exceeds_payment': 'Refund amount cannot exceed the amount paid',
    'card_not_accepted': '{fee} must be paid directly to the venue and cannot be paid by card',
    'only_requestor_pays': 'Only the requestor can pay for this reservation',
    'payment_already_processed': 'This payment has already been processed',
    'payment_started': 'Payment started',
    'payment_in_progress': 'A payment is already in progress for this fee',

    # Holidays
    'holiday_rule_created': 'Holiday rule created',
    'holiday_rule_updated': 'Holiday rule updated',
    'holiday_rule_deleted': 'Holiday rule deleted',
    'holiday_rule_cycle': 'Relative holiday rules cannot reference themselves in a cycle',
    'holiday_rule_referenced': 'This rule is referenced by: {names}',

    # Automation
    'automation_summary': 'Processed {total} records across {tasks} tasks',
    'automation_partial': 'Processed {total} records across {tasks} tasks; {failed} task(s) failed',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
