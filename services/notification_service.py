"""
Notification Service - queues templated notifications for delivery.

Rendering and transport belong to the delivery channel; this module only
records (template, entity, payload, channels) in the notifications outbox.
Sending is fire-and-forget: a failure is logged and never propagates to the
workflow action that triggered it.
"""

import json
import logging
from typing import Any, Iterable

from database import get_db, write_transaction
from models.user import get_users_by_roles
from utils.permissions import APPROVER_ROLES

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = ('email',)


class NotificationDispatcher:
    """Writes notifications to the outbox table read by the delivery channel."""

    def send(
        self,
        template_name: str,
        entity_type: str,
        entity_id: int,
        payload: dict,
        channels: Iterable[str] = DEFAULT_CHANNELS,
        recipient_user_id: int | None = None
    ) -> int:
        with write_transaction() as cursor:
            cursor.execute('''
                INSERT INTO notifications
                    (template_name, entity_type, entity_id, recipient_user_id, payload, channels)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (
                template_name, entity_type, entity_id, recipient_user_id,
                json.dumps(payload, default=str), ','.join(channels)
            ))
            return cursor.lastrowid


dispatcher = NotificationDispatcher()


def send_notification(
    template_name: str,
    entity_type: str,
    entity_id: int,
    payload: dict,
    channels: Iterable[str] = DEFAULT_CHANNELS,
    recipient_user_id: int | None = None
) -> int | None:
    """
    Queue a notification without ever raising.

    Args:
        template_name: Template the channel renders, e.g. 'reservation_request_approved'
        entity_type: Entity table, e.g. 'reservation_requests'
        entity_id: Entity ID
        payload: Raw values for the template (times as ISO-8601 with offset)
        channels: Delivery channels
        recipient_user_id: Recipient user

    Returns:
        Notification ID, or None if queuing failed
    """
    try:
        notification_id = dispatcher.send(
            template_name, entity_type, entity_id, payload, channels, recipient_user_id
        )
    except Exception:
        logger.error(
            'Failed to queue notification %s for %s #%s',
            template_name, entity_type, entity_id, exc_info=True
        )
        return None

    logger.debug('Queued %s for %s #%s (user %s)', template_name, entity_type, entity_id, recipient_user_id)
    return notification_id


def notify_managers(template_name: str, entity_type: str, entity_id: int,
                    payload: dict, **kwargs: Any) -> int:
    """
    Queue one notification per active manager and administrator.

    Returns:
        Number of notifications queued
    """
    try:
        managers = get_users_by_roles(APPROVER_ROLES)
    except Exception:
        logger.error('Failed to load managers for %s', template_name, exc_info=True)
        return 0

    sent = 0
    for manager in managers:
        if send_notification(template_name, entity_type, entity_id, payload,
                             recipient_user_id=manager['id'], **kwargs):
            sent += 1
    return sent


def get_notifications(entity_type: str | None = None, entity_id: int | None = None,
                      template_name: str | None = None) -> list:
    """
    List queued notifications, newest last.

    Returns:
        List of notification dicts with decoded payloads
    """
    query = 'SELECT * FROM notifications WHERE 1=1'
    params = []
    if entity_type:
        query += ' AND entity_type = ?'
        params.append(entity_type)
    if entity_id is not None:
        query += ' AND entity_id = ?'
        params.append(entity_id)
    if template_name:
        query += ' AND template_name = ?'
        params.append(template_name)
    query += ' ORDER BY id'

    cursor = get_db().cursor()
    cursor.execute(query, params)
    notifications = []
    for row in cursor.fetchall():
        notification = dict(row)
        notification['payload'] = json.loads(notification['payload'])
        notifications.append(notification)
    return notifications
