"""
Tests for the daily automation pipeline.
"""

import pytest
from datetime import timedelta


@pytest.fixture
def approved(app, users, make_reservation):
    """Approve a new reservation and return (id, event date)."""
    from models.reservation import get_reservation
    from models.reservation_state import approve_request
    from utils.datetime_helpers import parse_date

    def _approve(**kwargs):
        reservation_id = make_reservation(**kwargs)
        assert approve_request(reservation_id, users['manager'])['success']
        return reservation_id, parse_date(get_reservation(reservation_id)['starts_at'])
    return _approve


def _sent(template_name):
    from services.notification_service import get_notifications
    return get_notifications(template_name=template_name)


class TestAutoComplete:
    """Test completing events that have ended."""

    def test_past_event_completed(self, app, approved):
        from models.reservation import get_reservation
        from services.automation_service import run_daily_automation
        from utils.datetime_helpers import get_today

        reservation_id, _ = approved(event_day=get_today() - timedelta(days=2))
        future_id, _ = approved(days_ahead=60)

        report = run_daily_automation()

        assert report['success'] is True
        assert report['task_counts']['auto_complete_past_events'] == 1
        assert get_reservation(reservation_id)['status'] == 'Completed'
        assert get_reservation(future_id)['status'] == 'Approved'
        assert len(_sent('manager_post_event_reminder')) == 2

    def test_completed_events_still_reminded(self, app, approved):
        from services.automation_service import run_daily_automation
        from utils.datetime_helpers import get_today

        approved(event_day=get_today() - timedelta(days=2))
        report = run_daily_automation()

        assert report['task_counts']['auto_complete_past_events'] == 1
        assert report['task_counts']['payment_due_today'] == 3

    def test_unpaid_fees_overdue_after_staff_completion(self, app, users, approved):
        from models.reservation_state import complete_request
        from services.automation_service import run_daily_automation
        from utils.datetime_helpers import get_today

        reservation_id, _ = approved(event_day=get_today() + timedelta(days=1))
        assert complete_request(reservation_id, users['manager'])['success']

        report = run_daily_automation(today=get_today() + timedelta(days=3))

        assert report['task_counts']['payment_overdue'] == 3
        assert {r['payload']['reservation_id'] for r in _sent('payment_overdue')} == {reservation_id}


class TestPaymentReminders:
    """Test the three payment reminder tasks."""

    def test_seven_day_reminder(self, app, users, approved):
        from services.automation_service import run_daily_automation

        _, event_day = approved()
        report = run_daily_automation(today=event_day - timedelta(days=37))

        assert report['task_counts']['payment_reminders_7day'] == 1
        reminder = _sent('payment_reminder_7day')[0]
        assert reminder['recipient_user_id'] == users['requestor'].id
        assert reminder['payload']['fee_type'] == 'Facility Fee'
        assert reminder['payload']['due_date'] == (event_day - timedelta(days=30)).isoformat()

    def test_reminder_names_the_event(self, app, approved):
        from services.automation_service import run_daily_automation

        _, event_day = approved(start_hour=14)
        run_daily_automation(today=event_day - timedelta(days=37))

        payload = _sent('payment_reminder_7day')[0]['payload']
        assert payload['event_type'] == 'Birthday Party'
        assert payload['event_date'] == event_day.isoformat()
        assert payload['starts_at'].startswith(f'{event_day.isoformat()}T14:00:00')
        assert payload['starts_at'][-6] in '+-'

    def test_due_today_reminder(self, app, approved):
        from services.automation_service import run_daily_automation

        _, event_day = approved()
        report = run_daily_automation(today=event_day - timedelta(days=30))

        assert report['task_counts']['payment_due_today'] == 1
        assert report['task_counts']['payment_overdue'] == 0

    def test_overdue_reminder(self, app, approved):
        from services.automation_service import run_daily_automation
        from utils.datetime_helpers import get_today

        approved()
        report = run_daily_automation(today=get_today() + timedelta(days=3))

        assert report['task_counts']['payment_overdue'] == 1
        reminder = _sent('payment_overdue')[0]
        assert reminder['payload']['fee_type'] == 'Security Deposit'
        assert reminder['payload']['days_overdue'] == 3

    def test_overdue_window(self, app, approved):
        from services.automation_service import run_daily_automation
        from utils.datetime_helpers import get_today

        approved()
        report = run_daily_automation(today=get_today() + timedelta(days=8))
        assert report['task_counts']['payment_overdue'] == 0

    def test_paid_obligation_not_reminded(self, app, users, approved):
        from models.payment import get_payments_for_reservation, record_manual_payment
        from services.automation_service import run_daily_automation

        reservation_id, event_day = approved()
        fee = next(p for p in get_payments_for_reservation(reservation_id)
                   if p['fee_type_code'] == 'facility_fee')
        record_manual_payment(fee['id'], 'Check', None, users['manager'])

        report = run_daily_automation(today=event_day - timedelta(days=30))
        assert report['task_counts']['payment_due_today'] == 0

    def test_second_run_same_day_sends_nothing(self, app, approved):
        from services.automation_service import run_daily_automation

        _, event_day = approved()
        run_date = event_day - timedelta(days=37)

        first = run_daily_automation(today=run_date)
        second = run_daily_automation(today=run_date)

        assert first['details']['total_processed'] == 1
        assert second['details']['total_processed'] == 0
        assert len(_sent('payment_reminder_7day')) == 1


class TestPreEventReminders:
    """Test manager reminders for tomorrow's events."""

    def test_every_manager_reminded_once(self, app, users, approved):
        from services.automation_service import run_daily_automation

        reservation_id, event_day = approved()
        run_date = event_day - timedelta(days=1)

        report = run_daily_automation(today=run_date)
        run_daily_automation(today=run_date)

        assert report['task_counts']['pre_event_reminders'] == 2
        reminders = _sent('manager_pre_event_reminder')
        assert sorted(r['recipient_user_id'] for r in reminders) == sorted(
            [users['admin'].id, users['manager'].id]
        )
        assert all(r['entity_id'] == reservation_id for r in reminders)


class TestRunner:
    """Test failure isolation and run history."""

    def test_failing_task_does_not_stop_others(self, app, approved, monkeypatch):
        from services import automation_service

        def broken(today, now):
            raise RuntimeError('mail server down')

        tasks = list(automation_service.DAILY_TASKS)
        tasks[1] = ('payment_reminders_7day', broken)
        monkeypatch.setattr(automation_service, 'DAILY_TASKS', tasks)

        _, event_day = approved()
        report = automation_service.run_daily_automation(today=event_day - timedelta(days=1))

        assert report['success'] is False
        assert '1 task(s) failed' in report['message']
        failed = [t for t in report['details']['tasks'] if not t['success']]
        assert failed[0]['error'] == 'mail server down'
        assert report['task_counts']['pre_event_reminders'] == 2

    def test_runs_recorded(self, app):
        from services.automation_service import get_recent_runs, run_daily_automation

        report = run_daily_automation(today='2025-06-01', triggered_by='cli')
        runs = get_recent_runs()

        assert runs[0]['id'] == report['run_id']
        assert runs[0]['run_date'] == '2025-06-01'
        assert runs[0]['success'] is True
        assert runs[0]['triggered_by'] == 'cli'
        assert set(runs[0]['task_counts']) == {
            'auto_complete_past_events', 'payment_reminders_7day', 'payment_due_today',
            'payment_overdue', 'pre_event_reminders'
        }
