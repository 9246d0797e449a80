"""
User-facing notifications.

The hosting application passes in something with a notify() method;
without one, notifications go to the log.
"""
import logging
from enum import Enum
from typing import Any
from typing import Dict
from typing import Optional
from typing import Protocol

log = logging.getLogger("tasksync")

PROVIDER_NAME = "CalDAV Calendar"


class NotifyKind(Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class Notifier(Protocol):
    def notify(
        self, kind: NotifyKind, message: str, context: Optional[Dict[str, Any]] = None
    ) -> None: ...


class LoggingNotifier:
    """Notifications as log lines, for hosts without a notification UI"""

    def notify(
        self, kind: NotifyKind, message: str, context: Optional[Dict[str, Any]] = None
    ) -> None:
        level = logging.ERROR if kind is NotifyKind.ERROR else logging.WARNING
        log.log(level, "%s: %s %s", PROVIDER_NAME, message, context or "")


def safe_notify(
    notifier: Notifier,
    kind: NotifyKind,
    message: str,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """A failing notifier must not change the outcome of the operation"""
    try:
        notifier.notify(kind, message, context)
    except Exception:
        log.exception("notifier failed on %r", message)
