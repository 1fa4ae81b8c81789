"""
Holiday rule model and evaluation engine.

Holidays are stored as declarative rules and resolved to concrete dates for
any year on demand:

    fixed         month/day                       (Independence Day: 7/4)
    nth_weekday   nth weekday of a month          (Thanksgiving: 4th Thursday of November)
    last_weekday  last weekday of a month         (Memorial Day: last Monday of May)
    relative      offset from another rule        (Day After Thanksgiving: +1)
    weekend       Saturdays and Sundays, checked against the day of week

Weekdays use 0=Sunday .. 6=Saturday.
"""

import calendar
import logging
from datetime import date, timedelta
from enum import Enum

from flask import current_app

from database import get_db, write_transaction
from utils.errors import NotFoundError, ValidationError
from utils.messages import get_message

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']
ORDINALS = {1: '1st', 2: '2nd', 3: '3rd', 4: '4th', 5: '5th'}


class HolidayRuleType(str, Enum):
    FIXED = 'fixed'
    NTH_WEEKDAY = 'nth_weekday'
    LAST_WEEKDAY = 'last_weekday'
    RELATIVE = 'relative'
    WEEKEND = 'weekend'


# =============================================================================
# QUERIES
# =============================================================================

def get_all_holiday_rules(active_only: bool = False) -> list:
    """
    Get holiday rules ordered for display.

    Args:
        active_only: If True, only return active rules

    Returns:
        List of rule dicts with a readable 'schedule' field
    """
    cursor = get_db().cursor()
    query = 'SELECT * FROM holiday_rules'
    if active_only:
        query += ' WHERE is_active = 1'
    query += ' ORDER BY sort_order, id'
    cursor.execute(query)

    rules = [dict(row) for row in cursor.fetchall()]
    rules_by_id = _load_rules_by_id()
    for rule in rules:
        rule['schedule'] = describe_rule(rule, rules_by_id)
    return rules


def get_holiday_rule_by_id(rule_id: int) -> dict | None:
    """Get a single holiday rule."""
    cursor = get_db().cursor()
    cursor.execute('SELECT * FROM holiday_rules WHERE id = ?', (rule_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def _load_rules_by_id() -> dict:
    cursor = get_db().cursor()
    cursor.execute('SELECT * FROM holiday_rules')
    return {row['id']: dict(row) for row in cursor.fetchall()}


# =============================================================================
# EVALUATION
# =============================================================================

def sunday_based_weekday(day: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def resolve_holiday_date(rule: dict, year: int, rules_by_id: dict | None = None,
                         _chain: tuple = ()) -> date | None:
    """
    Resolve a rule to its date in the given year.

    Args:
        rule: Holiday rule dict
        year: Calendar year
        rules_by_id: All rules keyed by ID (needed for relative rules)

    Returns:
        The date, or None when the rule does not occur that year (a 5th
        Monday that does not exist, Feb 29 outside leap years), when a
        relative parent is unresolved, or for the weekend rule
    """
    rule_type = rule['rule_type']

    if rule_type == HolidayRuleType.FIXED:
        try:
            return date(year, rule['month'], rule['day'])
        except ValueError:
            return None

    if rule_type == HolidayRuleType.NTH_WEEKDAY:
        first = date(year, rule['month'], 1)
        offset = (rule['weekday'] - sunday_based_weekday(first) + 7) % 7
        result = first + timedelta(days=offset + (rule['nth'] - 1) * 7)
        return result if result.month == rule['month'] else None

    if rule_type == HolidayRuleType.LAST_WEEKDAY:
        last = date(year, rule['month'], calendar.monthrange(year, rule['month'])[1])
        back = (sunday_based_weekday(last) - rule['weekday'] + 7) % 7
        return last - timedelta(days=back)

    if rule_type == HolidayRuleType.RELATIVE:
        if rules_by_id is None:
            rules_by_id = _load_rules_by_id()
        chain = _chain + (rule['id'],)
        max_depth = current_app.config.get('MAX_HOLIDAY_RULE_DEPTH', 10)
        parent_id = rule['relative_to_rule_id']
        if parent_id in chain:
            logger.warning('Holiday rule %s is part of a reference cycle; skipped', rule['id'])
            return None
        if len(chain) > max_depth:
            logger.warning('Holiday rule %s exceeds reference depth %s; skipped', rule['id'], max_depth)
            return None
        parent = rules_by_id.get(parent_id)
        if parent is None:
            return None
        parent_date = resolve_holiday_date(parent, year, rules_by_id, chain)
        if parent_date is None:
            return None
        return parent_date + timedelta(days=rule['relative_days'])

    # Weekend rule is checked directly against the day of week
    return None


def list_holidays(year: int) -> list:
    """
    List the holidays that occur in a year.

    Args:
        year: Calendar year

    Returns:
        List of (name, date) tuples ordered by date
    """
    rules_by_id = _load_rules_by_id()
    holidays = [
        (name, resolved)
        for name, resolved in _resolve_active_rules(rules_by_id, (year - 1, year, year + 1))
        if resolved.year == year
    ]
    holidays.sort(key=lambda item: (item[1], item[0]))
    return holidays


def _resolve_active_rules(rules_by_id: dict, years: tuple) -> list:
    """Resolve every active dated rule for each year (relative offsets may cross a year end)."""
    resolved_dates = []
    for rule in rules_by_id.values():
        if not rule['is_active'] or rule['rule_type'] == HolidayRuleType.WEEKEND:
            continue
        for year in years:
            resolved = resolve_holiday_date(rule, year, rules_by_id)
            if resolved is not None:
                resolved_dates.append((rule['display_name'], resolved))
    return resolved_dates


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def is_holiday_or_weekend(day: date) -> bool:
    """
    Check whether a date falls on a weekend or an active holiday.

    Args:
        day: Date to check

    Returns:
        True for Saturdays, Sundays, and dates matching any active rule
    """
    if is_weekend(day):
        return True
    rules_by_id = _load_rules_by_id()
    return any(
        holiday_date == day
        for _, holiday_date in _resolve_active_rules(rules_by_id, (day.year - 1, day.year, day.year + 1))
    )


def describe_rule(rule: dict, rules_by_id: dict | None = None) -> str:
    """Readable schedule for a rule, e.g. '4th Thursday of November'."""
    rule_type = rule['rule_type']
    if rule_type == HolidayRuleType.FIXED:
        return f"{calendar.month_name[rule['month']]} {rule['day']}"
    if rule_type == HolidayRuleType.NTH_WEEKDAY:
        return (f"{ORDINALS[rule['nth']]} {WEEKDAY_NAMES[rule['weekday']]} "
                f"of {calendar.month_name[rule['month']]}")
    if rule_type == HolidayRuleType.LAST_WEEKDAY:
        return f"Last {WEEKDAY_NAMES[rule['weekday']]} of {calendar.month_name[rule['month']]}"
    if rule_type == HolidayRuleType.RELATIVE:
        parent = (rules_by_id or {}).get(rule['relative_to_rule_id'])
        parent_name = parent['display_name'] if parent else f"rule #{rule['relative_to_rule_id']}"
        days = rule['relative_days']
        direction = 'after' if days >= 0 else 'before'
        return f"{abs(days)} day(s) {direction} {parent_name}"
    return 'Every Saturday and Sunday'


# =============================================================================
# ADMINISTRATION
# =============================================================================

RULE_FIELDS = ('display_name', 'description', 'rule_type', 'month', 'day', 'weekday',
               'nth', 'relative_to_rule_id', 'relative_days', 'is_active', 'sort_order')


def _validate_rule(data: dict, rule_id: int | None, rules_by_id: dict) -> dict:
    """Check a rule payload and return the normalized column values."""
    if not (data.get('display_name') or '').strip():
        raise ValidationError(get_message('field_required', field='Name'))

    try:
        rule_type = HolidayRuleType(data.get('rule_type'))
    except ValueError:
        raise ValidationError(f"Invalid rule type: {data.get('rule_type')}")

    values = {field: data.get(field) for field in RULE_FIELDS}
    values['display_name'] = data['display_name'].strip()
    values['rule_type'] = rule_type.value
    values['is_active'] = 1 if data.get('is_active', True) else 0
    values['sort_order'] = int(data.get('sort_order') or 0)

    required = {
        HolidayRuleType.FIXED: ('month', 'day'),
        HolidayRuleType.NTH_WEEKDAY: ('month', 'weekday', 'nth'),
        HolidayRuleType.LAST_WEEKDAY: ('month', 'weekday'),
        HolidayRuleType.RELATIVE: ('relative_to_rule_id', 'relative_days'),
        HolidayRuleType.WEEKEND: (),
    }[rule_type]
    for field in RULE_FIELDS[3:9]:
        if field not in required:
            values[field] = None
            continue
        if values[field] is None:
            raise ValidationError(get_message('field_required', field=field))
        try:
            values[field] = int(values[field])
        except (TypeError, ValueError):
            raise ValidationError(f'{field} must be a whole number')

    if values['month'] is not None and not 1 <= values['month'] <= 12:
        raise ValidationError('month must be between 1 and 12')
    if values['day'] is not None:
        # Feb 29 is accepted; it resolves only in leap years
        if not 1 <= values['day'] <= calendar.monthrange(2024, values['month'])[1]:
            raise ValidationError('day is out of range for that month')
    if values['weekday'] is not None and not 0 <= values['weekday'] <= 6:
        raise ValidationError('weekday must be between 0 (Sunday) and 6 (Saturday)')
    if values['nth'] is not None and not 1 <= values['nth'] <= 5:
        raise ValidationError('nth must be between 1 and 5')

    if rule_type == HolidayRuleType.RELATIVE:
        parent_id = values['relative_to_rule_id']
        if parent_id not in rules_by_id:
            raise ValidationError('Referenced holiday rule does not exist')
        if rules_by_id[parent_id]['rule_type'] == HolidayRuleType.WEEKEND:
            raise ValidationError('Relative rules cannot reference the weekend rule')
        if _creates_cycle(rule_id, parent_id, rules_by_id):
            raise ValidationError(get_message('holiday_rule_cycle'))

    return values


def _creates_cycle(rule_id: int | None, parent_id: int, rules_by_id: dict) -> bool:
    """Walk the reference chain from parent_id looking for rule_id."""
    if rule_id is None:
        return False
    seen = set()
    current = parent_id
    while current is not None:
        if current == rule_id or current in seen:
            return True
        seen.add(current)
        parent = rules_by_id.get(current)
        if parent is None or parent['rule_type'] != HolidayRuleType.RELATIVE:
            return False
        current = parent['relative_to_rule_id']
    return False


def create_holiday_rule(data: dict) -> int:
    """
    Create a holiday rule.

    Args:
        data: Rule fields (display_name, rule_type and the type's parameters)

    Returns:
        New rule ID

    Raises:
        ValidationError: If the payload is invalid
    """
    with write_transaction() as cursor:
        values = _validate_rule(data, None, _load_rules_by_id())
        cursor.execute('SELECT 1 FROM holiday_rules WHERE display_name = ?', (values['display_name'],))
        if cursor.fetchone():
            raise ValidationError('A holiday rule with this name already exists')
        columns = ', '.join(RULE_FIELDS)
        placeholders = ', '.join('?' * len(RULE_FIELDS))
        cursor.execute(
            f'INSERT INTO holiday_rules ({columns}) VALUES ({placeholders})',
            tuple(values[field] for field in RULE_FIELDS)
        )
        rule_id = cursor.lastrowid

    logger.info('Holiday rule %s created: %s', rule_id, values['display_name'])
    return rule_id


def update_holiday_rule(rule_id: int, data: dict) -> dict:
    """
    Replace a holiday rule's definition.

    Args:
        rule_id: Rule ID
        data: Full rule payload; omitted fields keep their stored values

    Returns:
        Updated rule dict

    Raises:
        NotFoundError: If the rule does not exist
        ValidationError: If the payload is invalid or would create a cycle
    """
    with write_transaction() as cursor:
        rules_by_id = _load_rules_by_id()
        existing = rules_by_id.get(rule_id)
        if existing is None:
            raise NotFoundError(get_message('holiday_rule_not_found'))

        merged = {field: existing[field] for field in RULE_FIELDS}
        merged.update({k: v for k, v in data.items() if k in RULE_FIELDS})
        values = _validate_rule(merged, rule_id, rules_by_id)

        assignments = ', '.join(f'{field} = ?' for field in RULE_FIELDS)
        cursor.execute(
            f'UPDATE holiday_rules SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            tuple(values[field] for field in RULE_FIELDS) + (rule_id,)
        )

    logger.info('Holiday rule %s updated', rule_id)
    return get_holiday_rule_by_id(rule_id)


def delete_holiday_rule(rule_id: int) -> None:
    """
    Delete a holiday rule.

    Raises:
        NotFoundError: If the rule does not exist
        ValidationError: If a relative rule still references it
    """
    with write_transaction() as cursor:
        cursor.execute('SELECT id FROM holiday_rules WHERE id = ?', (rule_id,))
        if cursor.fetchone() is None:
            raise NotFoundError(get_message('holiday_rule_not_found'))

        cursor.execute(
            'SELECT display_name FROM holiday_rules WHERE relative_to_rule_id = ?', (rule_id,)
        )
        dependants = [row['display_name'] for row in cursor.fetchall()]
        if dependants:
            raise ValidationError(get_message('holiday_rule_referenced', names=', '.join(dependants)))

        cursor.execute('DELETE FROM holiday_rules WHERE id = ?', (rule_id,))

    logger.info('Holiday rule %s deleted', rule_id)
