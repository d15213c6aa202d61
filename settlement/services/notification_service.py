"""Notification sink used by payout and order status services."""

import logging
from typing import Any, Protocol

from settlement.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"


class NotificationSink(Protocol):
    """Anything that can accept a user notification request."""

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str,
        data: dict[str, Any] | None = None,
    ) -> None: ...


class SupabaseNotificationSink:
    """Writes notifications to the table rendered by the notification subsystem."""

    def __init__(self) -> None:
        self.client = get_supabase_client()

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Insert a notification row for a recipient.

        Args:
            recipient_id: User id of the recipient.
            title: Short title.
            message: Body text.
            notification_type: Category (e.g. 'payout', 'order_update').
            data: Optional structured payload.
        """
        self.client.table(NOTIFICATIONS_TABLE).insert(
            {
                "recipient_id": recipient_id,
                "title": title,
                "message": message,
                "type": notification_type,
                "data": data or {},
                "is_read": False,
            }
        ).execute()
        logger.debug("Notification %s queued for %s", notification_type, recipient_id)


async def notify_safely(
    sink: NotificationSink,
    recipient_id: str,
    title: str,
    message: str,
    notification_type: str,
    data: dict[str, Any] | None = None,
) -> bool:
    """Send a notification, logging and swallowing any failure.

    Returns:
        bool: True if the sink accepted the notification.
    """
    try:
        await sink.notify(recipient_id, title, message, notification_type, data)
        return True
    except Exception as e:
        logger.warning(
            "Failed to send %s notification to %s: %s",
            notification_type,
            recipient_id,
            str(e),
        )
        return False
