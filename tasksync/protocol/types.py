"""
Result types for parsed multistatus responses.
"""
from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any


@dataclass
class PropfindResult:
    """
    Properties of one resource from a PROPFIND response.

    Attributes:
        href: Path of the resource (unquoted)
        properties: Property tag -> parsed value
        status: Status of the response element
    """

    href: str
    properties: dict[str, Any] = field(default_factory=dict)
    status: int = 200


@dataclass
class CalendarQueryResult:
    """
    One calendar object from a calendar-query REPORT.

    Attributes:
        href: Path of the calendar object resource
        etag: Entity tag, if the server sent one
        calendar_data: The iCalendar text, if the server sent it
        status: Status of the response element
    """

    href: str
    etag: str | None = None
    calendar_data: str | None = None
    status: int = 200
