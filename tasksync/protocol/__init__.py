"""
Sans-I/O CalDAV protocol helpers.

- types: result dataclasses
- xml_builders: pure functions building XML request bodies
- xml_parsers: pure functions parsing multistatus response bodies

The client and the calendar handles do the I/O and hand the bytes
over to these functions.
"""

from .types import CalendarQueryResult
from .types import PropfindResult
from .xml_builders import build_propfind_body
from .xml_builders import build_uid_query_body
from .xml_parsers import parse_calendar_query_response
from .xml_parsers import parse_propfind_response

__all__ = [
    "CalendarQueryResult",
    "PropfindResult",
    "build_propfind_body",
    "build_uid_query_body",
    "parse_calendar_query_response",
    "parse_propfind_response",
]
