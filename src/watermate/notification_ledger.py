"""Per-user notification inbox for watermate."""

import dataclasses
import logging

from .errors import OperationFailedError
from .models import Notification, NotificationType
from .state_store import NOTIFICATIONS_KEY, StateStore

logger = logging.getLogger(__name__)


class NotificationLedger:
    """Owns the notification collection.

    Unread counts are always computed from the collection, so the count for a
    user can never drift from what ``get_notifications`` returns.
    """

    def __init__(self, store: StateStore | None = None):
        """
        Initialize NotificationLedger.

        Args:
            store: Backing store. When given, the collection is rehydrated
                from it now and written back after every mutation.
        """
        self._store = store
        self._notifications: list[Notification] = []
        self.load()

    def load(self) -> None:
        """Replace the in-memory collection with the stored one."""
        if self._store is None:
            return
        data = self._store.load(NOTIFICATIONS_KEY)
        if data is None:
            self._notifications = []
            return
        self._notifications = [
            Notification.from_dict(n) for n in data.get("notifications", [])
        ]

    def to_dict(self) -> dict:
        return {"notifications": [n.to_dict() for n in self._notifications]}

    def _commit(self, notifications: list[Notification], operation: str) -> None:
        """Persist ``notifications`` and make them current.

        Raises:
            OperationFailedError: If the store can't be written. The in-memory
                collection is left unchanged.
        """
        if self._store is not None:
            try:
                self._store.save(
                    NOTIFICATIONS_KEY,
                    {"notifications": [n.to_dict() for n in notifications]},
                )
            except OSError as e:
                raise OperationFailedError(operation, e) from e
        self._notifications = notifications

    def add_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType,
        action_url: str | None = None,
        is_read: bool = False,
    ) -> Notification:
        """Add a notification to the front of the inbox."""
        notification = Notification.create(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            action_url=action_url,
            is_read=is_read,
        )
        self._commit([notification, *self._notifications], "add_notification")
        logger.info(
            "Notification added",
            extra={
                "operation": "add_notification",
                "user_id": user_id,
                "notification_id": notification.id,
            },
        )
        return notification

    def mark_as_read(self, notification_id: str) -> None:
        """Mark one notification read. Unknown IDs are ignored."""
        found = False
        updated = []
        for n in self._notifications:
            if n.id == notification_id and not n.is_read:
                n = dataclasses.replace(n, is_read=True)
                found = True
            updated.append(n)
        if found:
            self._commit(updated, "mark_as_read")

    def mark_all_as_read(self, user_id: str) -> int:
        """
        Mark every unread notification of ``user_id`` as read.

        Returns:
            Number of notifications flipped.
        """
        flipped = 0
        updated = []
        for n in self._notifications:
            if n.user_id == user_id and not n.is_read:
                n = dataclasses.replace(n, is_read=True)
                flipped += 1
            updated.append(n)
        if flipped:
            self._commit(updated, "mark_all_as_read")
        return flipped

    def remove_notification(self, notification_id: str) -> Notification | None:
        """Delete a notification. Returns the removed one, or None if absent."""
        removed = None
        remaining = []
        for n in self._notifications:
            if removed is None and n.id == notification_id:
                removed = n
                continue
            remaining.append(n)
        if removed is not None:
            self._commit(remaining, "remove_notification")
        return removed

    def get_notification(self, notification_id: str) -> Notification | None:
        for n in self._notifications:
            if n.id == notification_id:
                return n
        return None

    def get_notifications(self, user_id: str) -> list[Notification]:
        """All notifications addressed to ``user_id``, newest first."""
        return [n for n in self._notifications if n.user_id == user_id]

    def get_unread_count(self, user_id: str) -> int:
        return sum(1 for n in self._notifications if n.user_id == user_id and not n.is_read)

    def unread_counts(self) -> dict[str, int]:
        """Unread count per user, for users with at least one unread notification."""
        counts: dict[str, int] = {}
        for n in self._notifications:
            if not n.is_read:
                counts[n.user_id] = counts.get(n.user_id, 0) + 1
        return counts

    def __len__(self) -> int:
        return len(self._notifications)
