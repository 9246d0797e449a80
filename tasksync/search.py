"""
Finding calendar objects on the server by UID.
"""
import logging
import re
from typing import List
from typing import Optional
from urllib.parse import quote

from tasksync.collection import Calendar
from tasksync.lib import error
from tasksync.lib import vcal
from tasksync.models import ObjectCapabilities
from tasksync.models import RemoteCalendarObject
from tasksync.protocol import build_uid_query_body

log = logging.getLogger("tasksync")


def _capabilities(calendar: Calendar, url: str, etag) -> ObjectCapabilities:
    async def update(data: str) -> None:
        await calendar.update_object(url, data, etag)

    async def delete() -> None:
        await calendar.delete_object(url)

    return ObjectCapabilities(update=update, delete=delete)


async def _load(calendar: Calendar, url: str) -> str:
    """Plain GET, for servers leaving the calendar data out of the REPORT"""
    r = await calendar.client.request(url)
    if r.status == 404:
        raise error.NotFoundError(url=url, reason=error.errmsg(r))
    if r.status >= 400:
        raise error.ResponseError(url=url, reason=error.errmsg(r))
    return r.raw


def _matching_uid(data: str, uid: str, component_type: str) -> Optional[str]:
    """
    The UID of the first component_type in data that is exactly uid, or
    None.  Data the parser refuses is judged by its UID lines; the sync
    verbs report it as unparseable later.
    """
    try:
        tree = vcal.parse_component(data)
    except error.MalformedRemoteObjectError:
        if re.search(f"^UID:{re.escape(uid)}[ \t\r]*$", data, re.MULTILINE):
            return uid
        return None
    for component in tree.walk(component_type.upper()):
        found = vcal.get_text(component, "UID")
        if found == uid:
            return found
    return None


async def find_by_uid(
    calendar: Calendar, uid: str, component_type: str = "VEVENT"
) -> List[RemoteCalendarObject]:
    """
    Find the objects with the given UID among the calendar's
    component_type ("VEVENT" or "VTODO") objects, with a calendar-query
    REPORT.  Finding nothing is not an error.

    The server's text-match is a substring match (RFC 4791 section
    9.7.5), so every result is checked for an exact UID before it is
    returned.
    """
    body = build_uid_query_body(uid, component_type)
    results = await calendar.calendar_query(body)

    found = []
    for result in results:
        if result.status == 404:
            continue
        url = str(calendar.url.join(quote(result.href)))
        data = result.calendar_data
        if data is None:
            error.weirdness(f"no calendar-data for {url} in the calendar-query response")
            data = await _load(calendar, url)
        matched = _matching_uid(data, uid, component_type)
        if matched is None:
            log.debug(f"{url} matched the query for {uid} but has another UID, skipped")
            continue
        found.append(
            RemoteCalendarObject(
                uid=matched,
                etag=result.etag,
                url=url,
                data=data,
                capabilities=_capabilities(calendar, url, result.etag),
            )
        )
    log.debug(f"{len(found)} {component_type} object(s) found for uid {uid}")
    return found
