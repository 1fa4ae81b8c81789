"""
Holiday API routes.
Resolved holiday calendar, date checks and rule administration.
"""

import logging
from flask import request
from flask_login import login_required

from models.holiday_rule import (
    create_holiday_rule,
    delete_holiday_rule,
    get_all_holiday_rules,
    get_holiday_rule_by_id,
    is_holiday_or_weekend,
    list_holidays,
    update_holiday_rule
)
from models.pricing import calculate_facility_fee
from utils.api_response import api_success, api_error, api_exception
from utils.datetime_helpers import get_today, parse_date
from utils.decorators import permission_required
from utils.errors import ReservationError
from utils.messages import get_message

logger = logging.getLogger(__name__)


def register_routes(bp):
    """Register holiday routes on the blueprint."""

    @bp.route('/holidays', methods=['GET'])
    @login_required
    @permission_required('venue.holidays.view')
    def holidays_for_year():
        """
        Holidays that fall in a year.

        Query params:
            year: Calendar year (defaults to the current year)
        """
        year = request.args.get('year', get_today().year, type=int)
        if not 1900 <= year <= 2200:
            return api_error('Year out of range', status=400)

        holidays = [{'name': name, 'date': day.isoformat()} for name, day in list_holidays(year)]
        return api_success(data=holidays, year=year)

    @bp.route('/holidays/check', methods=['GET'])
    @login_required
    @permission_required('venue.holidays.view')
    def check_date():
        """
        Pricing tier for a date.

        Query params:
            date: YYYY-MM-DD (required)
        """
        try:
            day = parse_date(request.args.get('date', ''))
        except ValueError:
            return api_error('A valid date (YYYY-MM-DD) is required', status=400)

        fee = calculate_facility_fee(day)
        return api_success(data={
            'date': day.isoformat(),
            'is_holiday_or_weekend': is_holiday_or_weekend(day),
            'tier': fee['tier'],
            'facility_fee': fee['amount'],
        })

    @bp.route('/holiday-rules', methods=['GET'])
    @login_required
    @permission_required('venue.holidays.view')
    def list_rules():
        """All holiday rules with readable schedules."""
        active_only = request.args.get('active', '').lower() == 'true'
        return api_success(data=get_all_holiday_rules(active_only=active_only))

    @bp.route('/holiday-rules', methods=['POST'])
    @login_required
    @permission_required('venue.holidays.manage')
    def create_rule():
        """
        Create a holiday rule.

        Request body:
            display_name, rule_type (required)
            month, day (fixed)
            month, weekday, nth (nth_weekday; weekday 0=Sunday)
            month, weekday (last_weekday)
            relative_to_rule_id, relative_days (relative)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error('Request body required', status=400)
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)

        try:
            rule_id = create_holiday_rule(data)
        except ReservationError as e:
            return api_exception(e)

        return api_success(data=get_holiday_rule_by_id(rule_id),
                           message=get_message('holiday_rule_created'), status=201)

    @bp.route('/holiday-rules/<int:rule_id>', methods=['PUT', 'PATCH'])
    @login_required
    @permission_required('venue.holidays.manage')
    def update_rule(rule_id):
        """Update a holiday rule; cycles between relative rules are rejected."""
        data = request.get_json(silent=True)
        if not data:
            return api_error('Request body required', status=400)
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)

        try:
            rule = update_holiday_rule(rule_id, data)
        except ReservationError as e:
            return api_exception(e)

        return api_success(data=rule, message=get_message('holiday_rule_updated'))

    @bp.route('/holiday-rules/<int:rule_id>', methods=['DELETE'])
    @login_required
    @permission_required('venue.holidays.manage')
    def delete_rule(rule_id):
        """Delete a holiday rule no other rule depends on."""
        try:
            delete_holiday_rule(rule_id)
        except ReservationError as e:
            return api_exception(e)

        return api_success(message=get_message('holiday_rule_deleted'))
