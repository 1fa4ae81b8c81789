"""
Database schema definitions.
Table creation, indexes, and structure management.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'scheduled_task_runs',
        'reminder_log',
        'notifications',
        'public_calendar_events',
        'reservation_notes',
        'payment_refunds',
        'payment_transactions',
        'reservation_payments',
        'confirmed_intervals',
        'reservation_requests',
        'reservation_fee_types',
        'holiday_rules',
        'role_permissions',
        'permissions',
        'roles',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users & Auth Tables
    db.execute('''
        CREATE TABLE roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            description TEXT,
            is_system INTEGER DEFAULT 0,
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            phone TEXT,
            role_id INTEGER REFERENCES roles(id),
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE permissions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            module TEXT NOT NULL,
            active INTEGER DEFAULT 1
        )
    ''')

    db.execute('''
        CREATE TABLE role_permissions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            permission_id INTEGER NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
            granted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(role_id, permission_id)
        )
    ''')

    # 2. Holiday rules (weekday: 0=Sunday .. 6=Saturday)
    db.execute('''
        CREATE TABLE holiday_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            display_name TEXT UNIQUE NOT NULL,
            description TEXT,
            rule_type TEXT NOT NULL CHECK(rule_type IN
                ('fixed', 'nth_weekday', 'last_weekday', 'relative', 'weekend')),
            month INTEGER CHECK(month BETWEEN 1 AND 12),
            day INTEGER CHECK(day BETWEEN 1 AND 31),
            weekday INTEGER CHECK(weekday BETWEEN 0 AND 6),
            nth INTEGER CHECK(nth BETWEEN 1 AND 5),
            relative_to_rule_id INTEGER REFERENCES holiday_rules(id),
            relative_days INTEGER,
            is_active INTEGER DEFAULT 1,
            sort_order INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(rule_type != 'fixed' OR (month IS NOT NULL AND day IS NOT NULL)),
            CHECK(rule_type != 'nth_weekday'
                  OR (month IS NOT NULL AND weekday IS NOT NULL AND nth IS NOT NULL)),
            CHECK(rule_type != 'last_weekday' OR (month IS NOT NULL AND weekday IS NOT NULL)),
            CHECK(rule_type != 'relative'
                  OR (relative_to_rule_id IS NOT NULL AND relative_days IS NOT NULL))
        )
    ''')

    # 3. Fee policy (due_days_before_event NULL = due on approval)
    db.execute('''
        CREATE TABLE reservation_fee_types (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            base_amount REAL NOT NULL,
            premium_amount REAL,
            is_refundable INTEGER DEFAULT 0,
            due_days_before_event INTEGER,
            sort_order INTEGER DEFAULT 0
        )
    ''')

    # 4. Reservation requests (times are venue-local 'YYYY-MM-DD HH:MM:SS')
    db.execute('''
        CREATE TABLE reservation_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requestor_id INTEGER NOT NULL REFERENCES users(id),
            requestor_name TEXT NOT NULL,
            requestor_address TEXT NOT NULL,
            requestor_phone TEXT NOT NULL,
            requestor_email TEXT,
            organization_name TEXT,
            event_type TEXT NOT NULL,
            starts_at TIMESTAMP NOT NULL,
            ends_at TIMESTAMP NOT NULL,
            attendee_count INTEGER NOT NULL CHECK(attendee_count >= 1),
            attendee_ages TEXT,
            is_food_served INTEGER DEFAULT 0,
            is_public_event INTEGER DEFAULT 0,
            is_fundraiser INTEGER DEFAULT 0,
            is_admission_charged INTEGER DEFAULT 0,
            policy_agreed INTEGER NOT NULL CHECK(policy_agreed = 1),
            policy_agreed_at TIMESTAMP,
            is_manager_event INTEGER DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'Pending' CHECK(status IN
                ('Pending', 'Approved', 'Denied', 'Cancelled', 'Completed', 'Closed')),
            reviewed_by INTEGER REFERENCES users(id),
            reviewed_at TIMESTAMP,
            denial_reason TEXT,
            cancellation_reason TEXT,
            cancelled_by INTEGER REFERENCES users(id),
            cancelled_at TIMESTAMP,
            completed_at TIMESTAMP,
            closed_by INTEGER REFERENCES users(id),
            closed_at TIMESTAMP,
            is_holiday_or_weekend INTEGER,
            facility_fee_amount REAL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(ends_at > starts_at),
            CHECK(status != 'Denied' OR COALESCE(length(trim(denial_reason)), 0) > 0),
            CHECK(status != 'Cancelled' OR COALESCE(length(trim(cancellation_reason)), 0) > 0)
        )
    ''')

    # 5. Confirmed interval registry (half-open [starts_at, ends_at))
    db.execute('''
        CREATE TABLE confirmed_intervals (
            reservation_id INTEGER PRIMARY KEY
                REFERENCES reservation_requests(id) ON DELETE CASCADE,
            starts_at TIMESTAMP NOT NULL,
            ends_at TIMESTAMP NOT NULL,
            confirmed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(ends_at > starts_at)
        )
    ''')

    db.execute('''
        CREATE TRIGGER trg_confirmed_intervals_no_overlap
        BEFORE INSERT ON confirmed_intervals
        WHEN EXISTS (
            SELECT 1 FROM confirmed_intervals c
            WHERE c.starts_at < NEW.ends_at AND c.ends_at > NEW.starts_at
        )
        BEGIN
            SELECT RAISE(ABORT, 'confirmed interval overlaps an existing booking');
        END
    ''')

    db.execute('''
        CREATE TRIGGER trg_confirmed_intervals_no_overlap_update
        BEFORE UPDATE OF starts_at, ends_at ON confirmed_intervals
        WHEN EXISTS (
            SELECT 1 FROM confirmed_intervals c
            WHERE c.reservation_id != NEW.reservation_id
              AND c.starts_at < NEW.ends_at AND c.ends_at > NEW.starts_at
        )
        BEGIN
            SELECT RAISE(ABORT, 'confirmed interval overlaps an existing booking');
        END
    ''')

    # 6. Payment ledger
    db.execute('''
        CREATE TABLE reservation_payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL
                REFERENCES reservation_requests(id) ON DELETE CASCADE,
            fee_type_id INTEGER NOT NULL REFERENCES reservation_fee_types(id),
            amount REAL NOT NULL CHECK(amount >= 0),
            due_date DATE NOT NULL,
            status TEXT NOT NULL DEFAULT 'Pending' CHECK(status IN
                ('Pending', 'Paid', 'Waived', 'Cancelled', 'Refunded')),
            payment_method TEXT,
            payment_date DATE,
            paid_amount REAL,
            transaction_id TEXT,
            refund_amount REAL,
            refund_notes TEXT,
            refund_processed_at TIMESTAMP,
            recorded_by INTEGER REFERENCES users(id),
            waived_by INTEGER REFERENCES users(id),
            waived_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(reservation_id, fee_type_id)
        )
    ''')

    db.execute('''
        CREATE TABLE payment_transactions (
            id TEXT PRIMARY KEY,
            entity_table TEXT NOT NULL,
            entity_id_column TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            link_column TEXT NOT NULL,
            amount REAL NOT NULL,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN
                ('pending', 'processing', 'succeeded', 'failed', 'canceled')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE payment_refunds (
            id TEXT PRIMARY KEY,
            transaction_id TEXT NOT NULL REFERENCES payment_transactions(id),
            amount REAL NOT NULL CHECK(amount > 0),
            status TEXT NOT NULL CHECK(status IN
                ('pending', 'processing', 'succeeded', 'failed', 'canceled')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 7. Notes, projection, outbox, automation
    db.execute('''
        CREATE TABLE reservation_notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL
                REFERENCES reservation_requests(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            note_type TEXT NOT NULL DEFAULT 'system' CHECK(note_type IN ('system', 'staff')),
            author_id INTEGER REFERENCES users(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE public_calendar_events (
            id INTEGER PRIMARY KEY
                REFERENCES reservation_requests(id) ON DELETE CASCADE,
            starts_at TIMESTAMP NOT NULL,
            ends_at TIMESTAMP NOT NULL,
            display_name TEXT NOT NULL,
            event_type TEXT NOT NULL,
            is_public_event INTEGER NOT NULL,
            organization_name TEXT,
            contact_name TEXT,
            contact_phone TEXT,
            attendee_ages TEXT,
            is_admission_charged INTEGER,
            synced_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            template_name TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            recipient_user_id INTEGER REFERENCES users(id),
            payload TEXT NOT NULL,
            channels TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'queued',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE reminder_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_name TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            recipient_user_id INTEGER NOT NULL,
            run_date DATE NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(task_name, entity_type, entity_id, recipient_user_id, run_date)
        )
    ''')

    db.execute('''
        CREATE TABLE scheduled_task_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_name TEXT NOT NULL,
            run_date DATE NOT NULL,
            started_at TIMESTAMP NOT NULL,
            finished_at TIMESTAMP,
            success INTEGER NOT NULL,
            total_processed INTEGER NOT NULL DEFAULT 0,
            task_counts TEXT NOT NULL,
            error_detail TEXT,
            triggered_by TEXT
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""

    # Reservation indexes
    db.execute('CREATE INDEX idx_requests_status ON reservation_requests(status)')
    db.execute('CREATE INDEX idx_requests_starts ON reservation_requests(starts_at, ends_at)')
    db.execute('CREATE INDEX idx_requests_requestor ON reservation_requests(requestor_id)')

    # Interval registry
    db.execute('CREATE INDEX idx_confirmed_intervals_range ON confirmed_intervals(starts_at, ends_at)')

    # Payment indexes
    db.execute('CREATE INDEX idx_payments_status_due ON reservation_payments(status, due_date)')
    db.execute('CREATE INDEX idx_payments_transaction ON reservation_payments(transaction_id)')
    db.execute('CREATE INDEX idx_refunds_transaction ON payment_refunds(transaction_id)')

    # Notes, projection, outbox
    db.execute('CREATE INDEX idx_notes_reservation ON reservation_notes(reservation_id, created_at)')
    db.execute('CREATE INDEX idx_public_events_range ON public_calendar_events(starts_at, ends_at)')
    db.execute('CREATE INDEX idx_notifications_entity ON notifications(entity_type, entity_id)')
    db.execute('CREATE INDEX idx_holiday_rules_active ON holiday_rules(is_active, sort_order)')

    # Permission indexes
    db.execute('CREATE INDEX idx_permissions_code ON permissions(code)')
    db.execute('CREATE INDEX idx_role_perms ON role_permissions(role_id, permission_id)')
