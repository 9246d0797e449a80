"""
Values passed in and out of the sync operations.

All times are epoch milliseconds, UTC.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Awaitable
from typing import Callable
from typing import Optional
from typing import Union

DEFAULT_EVENT_DURATION = 60 * 60 * 1000

UID_PREFIX = "sp-"
TASK_UID_PREFIX = "sp-task-"


def generate_uid() -> str:
    """A fresh UID for an object not tied to a task"""
    return UID_PREFIX + str(uuid.uuid4())


def task_uid(task_id: str) -> str:
    return TASK_UID_PREFIX + str(task_id)


def is_task_uid(uid: Optional[str]) -> bool:
    """True for objects this system created for a task, as opposed to objects the user created"""
    return bool(uid) and uid.startswith(TASK_UID_PREFIX)


class TodoStatus(str, Enum):
    NEEDS_ACTION = "NEEDS-ACTION"
    IN_PROCESS = "IN-PROCESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


def _check_range(name: str, value: Optional[int], low: int, high: int) -> None:
    if value is not None and not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")


def _coerce_status(record) -> None:
    if record.status is not None and not isinstance(record.status, TodoStatus):
        object.__setattr__(record, "status", TodoStatus(record.status))


@dataclass(frozen=True)
class EventRecord:
    """A VEVENT to create.  With no uid, one is generated"""

    uid: Optional[str]
    summary: str
    start: int
    end: int
    description: Optional[str] = None


@dataclass(frozen=True)
class EventChanges:
    """Partial EventRecord for updates.  None means "leave as it is"."""

    summary: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class TodoRecord:
    """A VTODO to create.  With no uid, one is generated"""

    uid: Optional[str]
    summary: str
    description: Optional[str] = None
    priority: Optional[int] = None
    due: Optional[int] = None
    percent_complete: Optional[int] = None
    status: Union[TodoStatus, str, None] = None

    def __post_init__(self) -> None:
        _check_range("priority", self.priority, 1, 9)
        _check_range("percent_complete", self.percent_complete, 0, 100)
        _coerce_status(self)


@dataclass(frozen=True)
class TodoChanges:
    """Partial TodoRecord for updates.  None means "leave as it is"."""

    summary: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[int] = None
    due: Optional[int] = None
    percent_complete: Optional[int] = None
    status: Union[TodoStatus, str, None] = None

    def __post_init__(self) -> None:
        _check_range("priority", self.priority, 1, 9)
        _check_range("percent_complete", self.percent_complete, 0, 100)
        _coerce_status(self)


def next_full_hour(now: int) -> int:
    """The start of the next hour after now, in UTC"""
    hour = 60 * 60 * 1000
    return (now // hour + 1) * hour


def event_for_task(
    task_id: str,
    title: str,
    due: Optional[int] = None,
    time_estimate: Optional[int] = None,
    notes: Optional[str] = None,
    now: Optional[int] = None,
) -> EventRecord:
    """
    The event written for a task.  It starts when the task is due, or
    at the next full hour for a task without a due time, and lasts for
    the task's time estimate, or an hour without one.
    """
    if due is None:
        if now is None:
            now = int(time.time() * 1000)
        due = next_full_hour(now)
    return EventRecord(
        uid=task_uid(task_id),
        summary=title,
        start=due,
        end=due + (time_estimate or DEFAULT_EVENT_DURATION),
        description=notes or None,
    )


@dataclass(frozen=True)
class ObjectCapabilities:
    """
    What may be done to a located object.  Either handle may be
    missing, in which case that operation is skipped.
    """

    update: Optional[Callable[[str], Awaitable[None]]] = None
    delete: Optional[Callable[[], Awaitable[None]]] = None


@dataclass(frozen=True)
class RemoteCalendarObject:
    uid: str
    etag: Optional[str]
    url: str
    data: str
    capabilities: ObjectCapabilities = field(default_factory=ObjectCapabilities)


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    calendars: list[str] = field(default_factory=list)
    error: Optional[str] = None
