"""
Tests for facility fee tiers and the fee schedule.
"""

from datetime import date, timedelta


class TestFacilityFee:
    """Test the holiday-aware facility fee."""

    def test_weekday_base_tier(self, app):
        from models.pricing import calculate_facility_fee

        fee = calculate_facility_fee(date(2025, 7, 7))
        assert fee == {'tier': 'base', 'amount': 150.0, 'is_holiday_or_weekend': False}

    def test_holiday_premium_tier(self, app):
        from models.pricing import calculate_facility_fee

        fee = calculate_facility_fee('2025-07-04')
        assert fee['tier'] == 'premium'
        assert fee['amount'] == 300.0
        assert fee['is_holiday_or_weekend'] is True

    def test_weekend_premium_tier(self, app):
        from models.pricing import FeeTier, facility_fee_tier

        assert facility_fee_tier(date(2025, 7, 5)) == FeeTier.PREMIUM
        assert facility_fee_tier(date(2025, 7, 6)) == FeeTier.PREMIUM


class TestFeeSchedule:
    """Test obligation lines built on approval."""

    def test_three_lines_with_offsets(self, app):
        from models.pricing import build_fee_schedule

        event_day = date(2025, 9, 17)
        approved_on = date(2025, 6, 1)
        schedule = {line['code']: line for line in build_fee_schedule(event_day, approved_on)}

        assert set(schedule) == {'security_deposit', 'facility_fee', 'cleaning_fee'}
        assert schedule['security_deposit']['due_date'] == approved_on
        assert schedule['security_deposit']['amount'] == 150.0
        assert schedule['facility_fee']['due_date'] == event_day - timedelta(days=30)
        assert schedule['facility_fee']['amount'] == 150.0
        assert schedule['cleaning_fee']['due_date'] == event_day - timedelta(days=7)
        assert schedule['cleaning_fee']['amount'] == 75.0

    def test_due_dates_never_before_approval(self, app):
        """Late approvals clamp due dates to the approval date."""
        from models.pricing import build_fee_schedule

        event_day = date(2025, 9, 17)
        approved_on = event_day - timedelta(days=10)
        schedule = {line['code']: line for line in build_fee_schedule(event_day, approved_on)}

        assert schedule['facility_fee']['due_date'] == approved_on
        assert schedule['cleaning_fee']['due_date'] == event_day - timedelta(days=7)

    def test_format_currency(self):
        from models.pricing import format_currency

        assert format_currency(1500) == '$1,500.00'
        assert format_currency(None) == '$0.00'
