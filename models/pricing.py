"""
Fee policy and facility fee pricing.

The facility fee has two tiers: the base rate on plain weekdays and the
premium rate on weekends and holidays. Deposit and cleaning fees are flat.
"""

from datetime import date, timedelta
from enum import Enum

from database import get_db
from models.holiday_rule import is_holiday_or_weekend
from utils.datetime_helpers import parse_date


class FeeType(str, Enum):
    SECURITY_DEPOSIT = 'security_deposit'
    FACILITY_FEE = 'facility_fee'
    CLEANING_FEE = 'cleaning_fee'


class FeeTier(str, Enum):
    BASE = 'base'
    PREMIUM = 'premium'


def get_fee_types() -> list:
    """Get the fee policy rows in obligation order."""
    cursor = get_db().cursor()
    cursor.execute('SELECT * FROM reservation_fee_types ORDER BY sort_order, id')
    return [dict(row) for row in cursor.fetchall()]


def get_fee_type(code: str) -> dict | None:
    cursor = get_db().cursor()
    cursor.execute('SELECT * FROM reservation_fee_types WHERE code = ?', (code,))
    row = cursor.fetchone()
    return dict(row) if row else None


def facility_fee_tier(event_date: date) -> FeeTier:
    """
    Pick the facility fee tier for an event date.

    Args:
        event_date: Local date the event starts

    Returns:
        FeeTier.PREMIUM on weekends and holidays, else FeeTier.BASE
    """
    return FeeTier.PREMIUM if is_holiday_or_weekend(event_date) else FeeTier.BASE


def calculate_facility_fee(event_date) -> dict:
    """
    Calculate the facility fee for an event date.

    Args:
        event_date: date or 'YYYY-MM-DD'

    Returns:
        Dict with tier, amount and is_holiday_or_weekend
    """
    event_date = parse_date(event_date)
    fee_type = get_fee_type(FeeType.FACILITY_FEE.value)
    tier = facility_fee_tier(event_date)
    amount = fee_type['base_amount']
    if tier == FeeTier.PREMIUM and fee_type['premium_amount'] is not None:
        amount = fee_type['premium_amount']
    return {
        'tier': tier.value,
        'amount': float(amount),
        'is_holiday_or_weekend': tier == FeeTier.PREMIUM,
    }


def build_fee_schedule(event_date, approval_date, facility_fee: dict | None = None) -> list:
    """
    Build one obligation line per fee type.

    Due dates are counted back from the event date; a fee with no offset is
    due on approval. No due date falls before the approval date.

    Args:
        event_date: Local date the event starts
        approval_date: Date of approval
        facility_fee: Precomputed result of calculate_facility_fee

    Returns:
        List of dicts with fee_type_id, code, display_name, amount, due_date
    """
    event_date = parse_date(event_date)
    approval_date = parse_date(approval_date)
    if facility_fee is None:
        facility_fee = calculate_facility_fee(event_date)

    schedule = []
    for fee_type in get_fee_types():
        if fee_type['code'] == FeeType.FACILITY_FEE:
            amount = facility_fee['amount']
        else:
            amount = float(fee_type['base_amount'])

        if fee_type['due_days_before_event'] is None:
            due_date = approval_date
        else:
            due_date = event_date - timedelta(days=fee_type['due_days_before_event'])
            due_date = max(due_date, approval_date)

        schedule.append({
            'fee_type_id': fee_type['id'],
            'code': fee_type['code'],
            'display_name': fee_type['display_name'],
            'amount': amount,
            'due_date': due_date,
        })
    return schedule


def format_currency(amount) -> str:
    return f'${float(amount or 0):,.2f}'
