"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""

    # 1. Create Roles
    roles_data = [
        ('admin', 'Administrator', 'Full system access', 1),
        ('manager', 'Pavilion Manager', 'Reviews requests and records payments', 1),
        ('requestor', 'Requestor', 'Submits and pays for reservation requests', 1)
    ]

    for name, display_name, description, is_system in roles_data:
        db.execute('''
            INSERT INTO roles (name, display_name, description, is_system)
            VALUES (?, ?, ?, ?)
        ''', (name, display_name, description, is_system))

    # 2. Create Permissions
    permissions_data = [
        ('venue.reservations.view', 'View Reservations', 'reservations'),
        ('venue.reservations.create', 'Submit Reservation Requests', 'reservations'),
        ('venue.reservations.review', 'Review Reservation Requests', 'reservations'),
        ('venue.reservations.delete', 'Delete Reservation Requests', 'reservations'),
        ('venue.payments.pay', 'Pay Reservation Fees', 'payments'),
        ('venue.payments.record', 'Record Payments', 'payments'),
        ('venue.holidays.view', 'View Holidays', 'config'),
        ('venue.holidays.manage', 'Manage Holiday Rules', 'config'),
        ('venue.automation.run', 'Run Scheduled Automation', 'admin'),
        ('venue.reports.view', 'View Reports', 'reports'),
    ]

    for code, name, module in permissions_data:
        db.execute('''
            INSERT INTO permissions (code, name, module)
            VALUES (?, ?, ?)
        ''', (code, name, module))

    # 3. Assign Permissions to Roles
    role_grants = {
        'admin': [code for code, _, _ in permissions_data],
        'manager': [
            'venue.reservations.view',
            'venue.reservations.create',
            'venue.reservations.review',
            'venue.payments.record',
            'venue.holidays.view',
            'venue.reports.view',
        ],
        'requestor': [
            'venue.reservations.view',
            'venue.reservations.create',
            'venue.payments.pay',
            'venue.holidays.view',
        ],
    }

    for role_name, codes in role_grants.items():
        role_id = db.execute('SELECT id FROM roles WHERE name = ?', (role_name,)).fetchone()[0]
        for code in codes:
            db.execute('''
                INSERT INTO role_permissions (role_id, permission_id)
                SELECT ?, id FROM permissions WHERE code = ?
            ''', (role_id, code))

    # 4. Create Admin User
    admin_role_id = db.execute("SELECT id FROM roles WHERE name = 'admin'").fetchone()[0]
    password_hash = generate_password_hash('admin123')
    db.execute('''
        INSERT INTO users (username, email, password_hash, full_name, role_id, active)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', ('admin', 'admin@mottpark.org', password_hash, 'System Administrator', admin_role_id, 1))

    # 5. Fee Policy
    fee_types = [
        # code, display_name, base, premium, refundable, due_days_before_event, order
        ('security_deposit', 'Security Deposit', 150.00, None, 1, None, 1),
        ('facility_fee', 'Facility Fee', 150.00, 300.00, 0, 30, 2),
        ('cleaning_fee', 'Cleaning Fee', 75.00, None, 0, 7, 3),
    ]

    for code, name, base, premium, refundable, due_days, order in fee_types:
        db.execute('''
            INSERT INTO reservation_fee_types
                (code, display_name, base_amount, premium_amount, is_refundable,
                 due_days_before_event, sort_order)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (code, name, base, premium, refundable, due_days, order))

    # 6. Holiday Rules (weekday: 0=Sunday .. 6=Saturday)
    seed_holiday_rules(db)


def seed_holiday_rules(db):
    """Insert the default holiday calendar."""
    fixed_rules = [
        ("New Year's Day", 1, 1, 1),
        ('Independence Day', 7, 4, 7),
        ('Veterans Day', 11, 11, 11),
        ('Christmas Eve', 12, 24, 14),
        ('Christmas Day', 12, 25, 15),
        ("New Year's Eve", 12, 31, 16),
    ]
    for name, month, day, order in fixed_rules:
        db.execute('''
            INSERT INTO holiday_rules (display_name, rule_type, month, day, sort_order)
            VALUES (?, 'fixed', ?, ?, ?)
        ''', (name, month, day, order))

    nth_rules = [
        ('Martin Luther King Jr. Day', 1, 1, 3, 2),
        ("Presidents' Day", 2, 1, 3, 3),
        ('Labor Day', 9, 1, 1, 8),
        ('Columbus Day', 10, 1, 2, 9),
        ('Thanksgiving', 11, 4, 4, 12),
    ]
    for name, month, weekday, nth, order in nth_rules:
        db.execute('''
            INSERT INTO holiday_rules (display_name, rule_type, month, weekday, nth, sort_order)
            VALUES (?, 'nth_weekday', ?, ?, ?, ?)
        ''', (name, month, weekday, nth, order))

    db.execute('''
        INSERT INTO holiday_rules (display_name, rule_type, month, weekday, sort_order)
        VALUES ('Memorial Day', 'last_weekday', 5, 1, 5)
    ''')

    thanksgiving_id = db.execute(
        "SELECT id FROM holiday_rules WHERE display_name = 'Thanksgiving'"
    ).fetchone()[0]
    db.execute('''
        INSERT INTO holiday_rules
            (display_name, rule_type, relative_to_rule_id, relative_days, sort_order)
        VALUES ('Day After Thanksgiving', 'relative', ?, 1, 13)
    ''', (thanksgiving_id,))

    db.execute('''
        INSERT INTO holiday_rules (display_name, description, rule_type, sort_order)
        VALUES ('Weekend', 'Saturdays and Sundays', 'weekend', 0)
    ''')
