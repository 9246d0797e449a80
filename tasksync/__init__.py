#!/usr/bin/env python
import logging

__version__ = "0.1.0"

from .cache import ConnectionCache
from .config import ConnectionConfig
from .models import EventChanges
from .models import EventRecord
from .models import TodoChanges
from .models import TodoRecord
from .models import TodoStatus
from .notify import NotifyKind
from .sync import CalendarSync

## Silence notification of no default logging handler
log = logging.getLogger("tasksync")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "CalendarSync",
    "ConnectionCache",
    "ConnectionConfig",
    "EventChanges",
    "EventRecord",
    "NotifyKind",
    "TodoChanges",
    "TodoRecord",
    "TodoStatus",
]
