"""
Automation API routes.
Manual trigger and run history for the daily scheduled tasks.
"""

from flask import request
from flask_login import login_required, current_user

from services.automation_service import get_recent_runs, run_daily_automation
from utils.api_response import api_success, api_error
from utils.datetime_helpers import parse_date
from utils.decorators import permission_required


def register_routes(bp):
    """Register automation routes on the blueprint."""

    @bp.route('/automation/run', methods=['POST'])
    @login_required
    @permission_required('venue.automation.run')
    def run_automation():
        """
        Run the daily pipeline now.

        Request body:
            date: Run date YYYY-MM-DD (optional, defaults to today)
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return api_error('Request body must be a JSON object', status=400)
        today = None
        if data.get('date'):
            try:
                today = parse_date(data['date'])
            except ValueError:
                return api_error('Invalid date', status=400)

        report = run_daily_automation(today=today, triggered_by=current_user.username)
        return api_success(data=report, message=report['message'])

    @bp.route('/automation/runs', methods=['GET'])
    @login_required
    @permission_required('venue.automation.run')
    def automation_runs():
        """Recent pipeline runs, newest first."""
        limit = min(request.args.get('limit', 20, type=int), 100)
        return api_success(data=get_recent_runs(limit))
