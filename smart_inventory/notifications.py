import logging
from collections import deque
from datetime import datetime, timezone

from .schemas import Notification

logger = logging.getLogger(__name__)

_LEVELS = {
    'default': logging.INFO,
    'warning': logging.WARNING,
    'destructive': logging.ERROR,
}


class Notifier:
    """Keeps the most recent user-facing messages."""

    def __init__(self, maxlen: int = 50):
        self.messages: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, title, description='', variant='default'):
        notification = Notification(
            title=title,
            description=description,
            variant=variant,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(notification)
        logger.log(_LEVELS[variant], '%s: %s', title, description)
        return notification

    def success(self, title, description=''):
        return self.notify(title, description)

    def warning(self, title, description=''):
        return self.notify(title, description, 'warning')

    def error(self, title, description=''):
        return self.notify(title, description, 'destructive')

    def recent(self, limit: int = 20) -> list[Notification]:
        return list(self.messages)[-limit:][::-1]
