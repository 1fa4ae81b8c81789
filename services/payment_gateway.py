"""
Payment Gateway Adapter - creates payment intents and tracks their lifecycle.

The card processor itself is external. This adapter owns the local
transaction and refund records the processor's webhooks update, and links a
new transaction to the entity being paid.
"""

import logging
import uuid
from enum import Enum

from database import get_db, write_transaction
from utils.datetime_helpers import now_timestamp

logger = logging.getLogger(__name__)

# (entity_table, entity_id_column, link_column) combinations that may be linked
LINKABLE_ENTITIES = {
    ('reservation_payments', 'id', 'transaction_id'),
}


class TransactionStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELED = 'canceled'


IN_FLIGHT_STATUSES = (TransactionStatus.PENDING.value, TransactionStatus.PROCESSING.value)


class PaymentGateway:
    """Local transaction ledger in front of the external card processor."""

    def create_payment_intent(self, entity_table: str, entity_id_column: str, entity_id: int,
                              link_column: str, amount: float, description: str) -> str:
        """
        Create a payment intent and link it to the entity row.

        Args:
            entity_table: Table holding the entity being paid
            entity_id_column: Key column of that table
            entity_id: Entity ID
            link_column: Column that stores the transaction ID
            amount: Amount to charge
            description: Statement description

        Returns:
            New transaction ID

        Raises:
            ValueError: If the entity link is not allowed or amount is not positive
        """
        if (entity_table, entity_id_column, link_column) not in LINKABLE_ENTITIES:
            raise ValueError(f'Cannot link payments to {entity_table}.{link_column}')
        if amount is None or amount <= 0:
            raise ValueError('Payment amount must be positive')

        transaction_id = f'txn_{uuid.uuid4().hex}'
        with write_transaction() as cursor:
            cursor.execute('''
                INSERT INTO payment_transactions
                    (id, entity_table, entity_id_column, entity_id, link_column, amount, description)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (transaction_id, entity_table, entity_id_column, entity_id, link_column,
                  round(float(amount), 2), description))
            cursor.execute(
                f'UPDATE {entity_table} SET {link_column} = ?, updated_at = ? '
                f'WHERE {entity_id_column} = ?',
                (transaction_id, now_timestamp(), entity_id)
            )

        logger.info('Payment intent %s created for %s #%s (%.2f)', transaction_id, entity_table, entity_id, amount)
        return transaction_id

    def get_transaction(self, transaction_id: str) -> dict | None:
        cursor = get_db().cursor()
        cursor.execute('SELECT * FROM payment_transactions WHERE id = ?', (transaction_id,))
        row = cursor.fetchone()
        return dict(row) if row else None

    def update_transaction_status(self, transaction_id: str, status: str) -> bool:
        """
        Store the processor's latest status for a transaction.

        Returns:
            False if the transaction is unknown
        """
        status = TransactionStatus(status).value
        with write_transaction() as cursor:
            cursor.execute('''
                UPDATE payment_transactions
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (status, transaction_id))
            return cursor.rowcount > 0

    def upsert_refund(self, refund_id: str, transaction_id: str, amount: float, status: str) -> None:
        """Insert or update a refund reported by the processor."""
        status = TransactionStatus(status).value
        with write_transaction() as cursor:
            cursor.execute('''
                INSERT INTO payment_refunds (id, transaction_id, amount, status)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    amount = excluded.amount,
                    status = excluded.status,
                    updated_at = CURRENT_TIMESTAMP
            ''', (refund_id, transaction_id, round(float(amount), 2), status))

    def get_refunded_total(self, transaction_id: str) -> float:
        """Sum of succeeded refunds for a transaction."""
        cursor = get_db().cursor()
        cursor.execute('''
            SELECT COALESCE(SUM(amount), 0) as total FROM payment_refunds
            WHERE transaction_id = ? AND status = ?
        ''', (transaction_id, TransactionStatus.SUCCEEDED.value))
        return float(cursor.fetchone()['total'])


gateway = PaymentGateway()
