"""
Tests for holiday rule resolution and administration.
"""

import pytest
from datetime import date


def _rule_by_name(name):
    from database import get_db
    row = get_db().execute('SELECT * FROM holiday_rules WHERE display_name = ?', (name,)).fetchone()
    return dict(row)


class TestResolveHolidayDate:
    """Test resolving rules to concrete dates."""

    def test_thanksgiving_fourth_thursday(self, app):
        """Thanksgiving resolves to the 4th Thursday of November."""
        from models.holiday_rule import resolve_holiday_date

        rule = _rule_by_name('Thanksgiving')
        assert resolve_holiday_date(rule, 2025) == date(2025, 11, 27)
        assert resolve_holiday_date(rule, 2026) == date(2026, 11, 26)

    def test_fifth_monday_missing_returns_none(self, app):
        """A 5th Monday of February does not exist in 2025."""
        from models.holiday_rule import resolve_holiday_date

        rule = {'id': 999, 'rule_type': 'nth_weekday', 'month': 2, 'weekday': 1, 'nth': 5}
        assert resolve_holiday_date(rule, 2025) is None

    def test_last_monday_of_may(self, app):
        """Memorial Day is the last Monday of May."""
        from models.holiday_rule import resolve_holiday_date

        rule = _rule_by_name('Memorial Day')
        assert resolve_holiday_date(rule, 2025) == date(2025, 5, 26)
        assert resolve_holiday_date(rule, 2026) == date(2026, 5, 25)

    def test_relative_rule(self, app):
        """Day After Thanksgiving follows its parent rule."""
        from models.holiday_rule import resolve_holiday_date

        rule = _rule_by_name('Day After Thanksgiving')
        assert resolve_holiday_date(rule, 2025) == date(2025, 11, 28)

    def test_fixed_leap_day(self, app):
        """Feb 29 resolves only in leap years."""
        from models.holiday_rule import resolve_holiday_date

        rule = {'id': 998, 'rule_type': 'fixed', 'month': 2, 'day': 29}
        assert resolve_holiday_date(rule, 2024) == date(2024, 2, 29)
        assert resolve_holiday_date(rule, 2025) is None

    def test_cycle_in_stored_rules_returns_none(self, app):
        """A reference cycle is detected instead of recursing forever."""
        from models.holiday_rule import resolve_holiday_date

        rules_by_id = {
            1: {'id': 1, 'rule_type': 'relative', 'relative_to_rule_id': 2, 'relative_days': 1},
            2: {'id': 2, 'rule_type': 'relative', 'relative_to_rule_id': 1, 'relative_days': 1},
        }
        assert resolve_holiday_date(rules_by_id[1], 2025, rules_by_id) is None


class TestIsHolidayOrWeekend:
    """Test the pricing tier predicate."""

    @pytest.mark.parametrize('day, expected', [
        (date(2025, 7, 4), True),    # Independence Day
        (date(2025, 7, 5), True),    # Saturday
        (date(2025, 7, 7), False),   # Plain Monday
        (date(2025, 11, 28), True),  # Day after Thanksgiving
        (date(2025, 1, 20), True),   # MLK Day, 3rd Monday of January
    ])
    def test_known_dates(self, app, day, expected):
        from models.holiday_rule import is_holiday_or_weekend
        assert is_holiday_or_weekend(day) is expected

    def test_inactive_rule_ignored(self, app):
        """Deactivated rules no longer affect pricing."""
        from models.holiday_rule import is_holiday_or_weekend, update_holiday_rule

        rule = _rule_by_name('Independence Day')
        update_holiday_rule(rule['id'], {'is_active': False})
        assert is_holiday_or_weekend(date(2025, 7, 4)) is False


class TestListHolidays:
    """Test listing holidays for a year."""

    def test_list_sorted_by_date(self, app):
        from models.holiday_rule import list_holidays

        holidays = list_holidays(2025)
        dates = [day for _, day in holidays]
        assert dates == sorted(dates)
        assert ('Thanksgiving', date(2025, 11, 27)) in holidays
        assert all(day.year == 2025 for day in dates)


class TestHolidayAdministration:
    """Test creating, updating and deleting rules."""

    def test_create_fixed_rule(self, app):
        from models.holiday_rule import create_holiday_rule, is_holiday_or_weekend

        create_holiday_rule({'display_name': 'Park Founders Day', 'rule_type': 'fixed',
                             'month': 6, 'day': 3})
        assert is_holiday_or_weekend(date(2025, 6, 3)) is True

    def test_invalid_rule_rejected(self, app):
        from models.holiday_rule import create_holiday_rule
        from utils.errors import ValidationError

        with pytest.raises(ValidationError):
            create_holiday_rule({'display_name': 'Bad', 'rule_type': 'nth_weekday',
                                 'month': 13, 'weekday': 1, 'nth': 1})

    def test_cycle_rejected_on_update(self, app):
        """Pointing Thanksgiving at its own dependant is rejected."""
        from models.holiday_rule import create_holiday_rule, update_holiday_rule
        from utils.errors import ValidationError

        day_after = _rule_by_name('Day After Thanksgiving')
        second = create_holiday_rule({'display_name': 'Two Days After Thanksgiving',
                                      'rule_type': 'relative',
                                      'relative_to_rule_id': day_after['id'],
                                      'relative_days': 1})

        with pytest.raises(ValidationError):
            update_holiday_rule(day_after['id'], {'relative_to_rule_id': second})

    def test_delete_referenced_rule_blocked(self, app):
        from models.holiday_rule import delete_holiday_rule
        from utils.errors import ValidationError

        with pytest.raises(ValidationError) as excinfo:
            delete_holiday_rule(_rule_by_name('Thanksgiving')['id'])
        assert 'Day After Thanksgiving' in str(excinfo.value)

    def test_delete_unknown_rule(self, app):
        from models.holiday_rule import delete_holiday_rule
        from utils.errors import NotFoundError

        with pytest.raises(NotFoundError):
            delete_holiday_rule(99999)
