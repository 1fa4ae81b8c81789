"""
Database package for the pavilion reservation system.

This package provides modular database operations:
- connection: Database connection management (get_db, close_db, init_db, write_transaction)
- schema: Table creation and indexes
- seed: Initial seed data (roles, permissions, fee policy, holiday calendar)
"""

from database.connection import get_db, close_db, init_db, write_transaction
from database.schema import drop_tables, create_tables, create_indexes
from database.seed import seed_database, seed_holiday_rules

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'write_transaction',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    # Seed
    'seed_database',
    'seed_holiday_rules',
]
