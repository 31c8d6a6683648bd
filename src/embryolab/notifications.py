"""Destinations for user-facing success and failure messages."""

from __future__ import annotations

import logging
from typing import List, Protocol

from .models import Notification, Severity

LOGGER = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.destructive else logging.INFO
        LOGGER.log(level, "%s: %s", notification.title, notification.description)


class RecordingNotificationSink:
    """Keeps every notification in memory, optionally forwarding to another sink."""

    def __init__(self, forward: NotificationSink | None = None) -> None:
        self.notifications: List[Notification] = []
        self._forward = forward

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        if self._forward is not None:
            self._forward.notify(notification)

    @property
    def last(self) -> Notification | None:
        return self.notifications[-1] if self.notifications else None

    def titles(self) -> List[str]:
        return [notification.title for notification in self.notifications]

    def failures(self) -> List[Notification]:
        return [n for n in self.notifications if n.severity is Severity.DESTRUCTIVE]
