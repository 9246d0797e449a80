#!/usr/bin/env python
"""
iCalendar text for the objects we write, and the parse/mutate/serialize
round trip for the objects we update.

Both directions go through the icalendar library.  New objects are
built property by property and serialized in that order, escaped and
folded by icalendar.  Objects fetched from the server are parsed into
a Calendar: an ordered property mapping with a list of subcomponents,
which is all an update needs.
"""
import datetime
import logging
import re
from typing import Optional
from typing import Union

import icalendar

from tasksync.lib import error
from tasksync.lib.python_utilities import to_normal_str

log = logging.getLogger("tasksync")

PRODID = "-//Super Productivity//CalDAV Calendar Sync//EN"

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

## Global counter for the rate-limited warning in fix()
fixup_error_loggings = 0


def utc_datetime(timestamp: int) -> datetime.datetime:
    """Epoch milliseconds to an aware UTC datetime"""
    return _EPOCH + datetime.timedelta(milliseconds=timestamp)


def to_timestamp(value: Union[datetime.date, datetime.datetime]) -> int:
    """Date or datetime to epoch milliseconds.  Naive values and plain dates are taken as UTC"""
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return (value - _EPOCH) // datetime.timedelta(milliseconds=1)


def format_utc(timestamp: int) -> str:
    """
    Epoch milliseconds as an RFC 5545 UTC date-time,
    i.e. 1700000000000 -> "20231114T221320Z".  Milliseconds are dropped.
    """
    return utc_datetime(timestamp).strftime("%Y%m%dT%H%M%SZ")


def escape(text: str) -> str:
    """
    Escape a TEXT value.  The backslash has to go first, otherwise the
    backslashes added for the other characters would be doubled.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _now(now: Optional[int]) -> int:
    if now is None:
        return to_timestamp(datetime.datetime.now(tz=datetime.timezone.utc))
    return now


def _wrap(component: icalendar.cal.Component) -> str:
    tree = icalendar.Calendar()
    tree.add("version", "2.0")
    tree.add("prodid", PRODID)
    tree.add_component(component)
    ## properties in the order they were added, folded at 75 octets
    return to_normal_str(tree.to_ical(sorted=False))


def build_event(
    uid: str,
    summary: str,
    start: int,
    end: int,
    description: Optional[str] = None,
    now: Optional[int] = None,
) -> str:
    """
    A VCALENDAR holding one VEVENT.  start, end and now are epoch
    milliseconds; SEQUENCE always starts at 0.
    """
    event = icalendar.Event()
    event.add("uid", uid)
    event.add("dtstamp", utc_datetime(_now(now)))
    event.add("dtstart", utc_datetime(start))
    event.add("dtend", utc_datetime(end))
    event.add("summary", summary)
    if description:
        event.add("description", description)
    event.add("sequence", 0)
    return _wrap(event)


def build_todo(
    uid: str,
    summary: str,
    status: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[int] = None,
    due: Optional[int] = None,
    percent_complete: Optional[int] = None,
    now: Optional[int] = None,
) -> str:
    """
    A VCALENDAR holding one VTODO.  STATUS defaults to NEEDS-ACTION,
    CREATED is the same as DTSTAMP and the optional fields are only
    written when given.
    """
    ## STATUS should default to NEEDS-ACTION, otherwise some servers
    ## will not find the task again when searching for pending tasks
    status = getattr(status, "value", status) or "NEEDS-ACTION"
    stamp = utc_datetime(_now(now))
    todo = icalendar.Todo()
    todo.add("uid", uid)
    todo.add("dtstamp", stamp)
    todo.add("created", stamp)
    todo.add("summary", summary)
    todo.add("status", status)
    if status == "COMPLETED":
        todo.add("completed", stamp)
    if description:
        todo.add("description", description)
    if priority is not None:
        todo.add("priority", priority)
    if due is not None:
        todo.add("due", utc_datetime(due))
    if percent_complete is not None:
        todo.add("percent-complete", percent_complete)
    todo.add("sequence", 0)
    return _wrap(todo)


class LineFilterDiscardingDuplicates:
    """
    Keeps track of whether a DTSTAMP was already seen within the
    current component.  Must be called line by line, in order.
    """

    def __init__(self) -> None:
        self.stamped = 0

    def __call__(self, line: str) -> bool:
        if line.startswith("BEGIN:V"):
            self.stamped = 0
        elif re.match("DTSTAMP[:;]", line):
            if self.stamped:
                return False
            self.stamped += 1
        return True


def fix(data: Union[str, bytes]) -> str:
    """
    Work around known breakages in ical data delivered by servers
    before it's given to the parser:

    1) COMPLETED MUST be a UTC date-time, but some servers give a date.

    2) iCloud sometimes duplicates DTSTAMP; the first one is kept.
    """
    data = to_normal_str(data)
    if not data.endswith("\n"):
        data = data + "\n"

    fixed = re.sub(
        r"^COMPLETED(?:;VALUE=DATE)?:(\d{8})$",
        r"COMPLETED:\g<1>T120000Z",
        data,
        flags=re.MULTILINE,
    )
    fixed = (
        "\n".join(filter(LineFilterDiscardingDuplicates(), fixed.strip().split("\n")))
        + "\n"
    )

    if fixed.strip() != data.strip():
        ## only powers of two get logged as warnings
        global fixup_error_loggings
        fixup_error_loggings += 1
        n = fixup_error_loggings
        _log = log.warning if not (n & (n - 1)) else log.debug
        _log(
            "Ical data was modified to avoid compatibility issues "
            f"(error count: {n} - this message is ratelimited)"
        )
    return fixed


def parse_component(data: Union[str, bytes]) -> icalendar.Calendar:
    try:
        return icalendar.Calendar.from_ical(fix(data))
    except ValueError as err:
        raise error.MalformedRemoteObjectError(
            f"Unparseable calendar data: {err}"
        ) from err


def find_subcomponent(
    tree: icalendar.cal.Component, name: str
) -> Optional[icalendar.cal.Component]:
    """First subcomponent called name ("vevent", "vtodo"), or None"""
    found = tree.walk(name.upper())
    if not found:
        return None
    return found[0]


def serialize(tree: icalendar.cal.Component) -> str:
    return to_normal_str(tree.to_ical())


def get_text(component: icalendar.cal.Component, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def get_int(component: icalendar.cal.Component, name: str) -> Optional[int]:
    value = component.get(name)
    if value is None:
        return None
    return int(value)


def get_timestamp(component: icalendar.cal.Component, name: str) -> Optional[int]:
    if name not in component:
        return None
    return to_timestamp(component.decoded(name))


def set_property(component: icalendar.cal.Component, name: str, value) -> None:
    component.pop(name, None)
    component.add(name, value)


def set_utc_datetime(
    component: icalendar.cal.Component, name: str, timestamp: int
) -> None:
    set_property(component, name, utc_datetime(timestamp))


def bump_sequence(component: icalendar.cal.Component) -> int:
    """Increase SEQUENCE by one, an absent SEQUENCE counts as 0.  Returns the new value"""
    seqno = component.pop("SEQUENCE", None)
    seqno = 1 if seqno is None else int(seqno) + 1
    component.add("SEQUENCE", seqno)
    return seqno
