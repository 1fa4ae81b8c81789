"""
Database connection management.
Handles connection setup, write transactions, initialization, and teardown.
"""

import logging
import sqlite3
from contextlib import contextmanager
from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Get thread-safe database connection with row factory.

    Date and time columns are stored and returned as ISO text.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/pavilion.db')
        g.db = sqlite3.connect(db_path, timeout=30)
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def write_transaction():
    """
    Run a block inside a BEGIN IMMEDIATE transaction.

    The write lock is taken up front, so every check made inside the block
    holds until commit. When a transaction is already open the block joins
    it and the outer owner commits or rolls back.

    Yields:
        sqlite3.Cursor: Cursor bound to the transaction
    """
    db = get_db()
    cursor = db.cursor()

    if db.in_transaction:
        yield cursor
        return

    cursor.execute('BEGIN IMMEDIATE')
    try:
        yield cursor
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db)

    db.commit()
    logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))
