#!/usr/bin/env python
"""
Calendar homes and calendars.

A CalendarHome lists the calendar collections below it.  A Calendar
is a handle on one calendar collection: its URL, the name it is
matched by and whether we may write to it, plus the requests that
create, update and delete objects in it.

Refer to RFC 4791 for details:
https://tools.ietf.org/html/rfc4791#section-5.3.1
"""
import logging
from typing import TYPE_CHECKING, List, Optional, Union
from urllib.parse import quote

from tasksync.elements import cdav
from tasksync.elements import dav
from tasksync.lib import error
from tasksync.lib.url import URL
from tasksync.protocol import CalendarQueryResult
from tasksync.protocol import build_propfind_body
from tasksync.protocol import parse_calendar_query_response
from tasksync.protocol import parse_propfind_response

if TYPE_CHECKING:
    from tasksync.davclient import AsyncDAVClient

log = logging.getLogger("tasksync")

## Any of these in the current-user-privilege-set means we may write
WRITE_PRIVILEGES = (dav.Write.tag, dav.WriteContent.tag, dav.All.tag)


class CalendarHome:
    """
    A calendar home set, the collection holding the user's calendars.
    """

    def __init__(self, client: "AsyncDAVClient", url: Union[str, URL]) -> None:
        self.client = client
        self.url = URL.objectify(url)

    def __repr__(self) -> str:
        return "%s(%s)" % (self.__class__.__name__, self.url)

    async def calendars(self) -> List["Calendar"]:
        """
        List all calendar collections in this home, using a PROPFIND at
        depth 1.

        Returns:
            List of Calendar objects, in the order the server gave them
        """
        props = [
            dav.DisplayName(),
            dav.ResourceType(),
            dav.CurrentUserPrivilegeSet(),
            cdav.ReadOnly(),
        ]
        response = await self.client.propfind(self.url, build_propfind_body(props), depth=1)
        if response.status == 404:
            raise error.NotFoundError(url=str(self.url), reason=error.errmsg(response))
        if response.status >= 400:
            raise error.PropfindError(url=str(self.url), reason=error.errmsg(response))

        cals = []
        for result in parse_propfind_response(response.content, response.status):
            resource_types = result.properties.get(dav.ResourceType.tag) or []
            if cdav.Calendar.tag not in resource_types:
                continue
            url = self.url.join(quote(result.href))
            ## the home itself may be listed too, ref RFC 4918 section 9.1
            if url.canonical() == self.url.canonical():
                continue
            cals.append(
                Calendar(
                    self.client,
                    url=url,
                    display_name=result.properties.get(dav.DisplayName.tag),
                    read_only=_is_read_only(result.properties),
                )
            )
        return cals


def _is_read_only(properties: dict) -> bool:
    """
    The ownCloud read-only flag wins if it's given.  Otherwise, if the
    server told us our privileges, we need one of the write privileges.
    A server telling us nothing gets the benefit of the doubt.
    """
    flag = properties.get(cdav.ReadOnly.tag)
    if flag is not None:
        return flag.strip().lower() in ("1", "true")
    privileges = properties.get(dav.CurrentUserPrivilegeSet.tag)
    if privileges is None:
        return False
    return not any(p in WRITE_PRIVILEGES for p in privileges)


class Calendar:
    """
    Handle on a calendar collection.

    Attributes:
        url: URL of the collection
        display_name: DAV:displayname, if the server has one
        read_only: True if writes will be refused
    """

    def __init__(
        self,
        client: "AsyncDAVClient",
        url: Union[str, URL],
        display_name: Optional[str] = None,
        read_only: bool = False,
    ) -> None:
        self.client = client
        self.url = URL.objectify(url)
        self.display_name = display_name
        self.read_only = read_only

    @property
    def name(self) -> str:
        """The display name, falling back to the last segment of the URL"""
        return self.display_name or self.url.last_segment()

    def __repr__(self) -> str:
        return "%s(%s, name=%r, read_only=%s)" % (
            self.__class__.__name__,
            self.url,
            self.name,
            self.read_only,
        )

    def object_url(self, uid: str) -> URL:
        ## slashes are double-quoted, see https://github.com/python-caldav/caldav/issues/143
        return self.url.join(quote(uid.replace("/", "%2F")) + ".ics")

    async def calendar_query(self, body: bytes) -> List[CalendarQueryResult]:
        """Send a calendar-query REPORT and parse the multistatus"""
        response = await self.client.report(self.url, body, depth=1)
        if response.status >= 400:
            raise error.ReportError(url=str(self.url), reason=error.errmsg(response))
        return parse_calendar_query_response(response.content, response.status)

    async def create_object(self, uid: str, data: str) -> URL:
        """
        PUT a new calendar object resource.  If-None-Match makes sure
        an existing object with the same name is not overwritten.

        Returns:
            URL of the new object
        """
        url = self.object_url(uid)
        r = await self.client.put(
            url,
            data,
            {"Content-Type": 'text/calendar; charset="utf-8"', "If-None-Match": "*"},
        )
        if r.status not in (200, 201, 204):
            raise error.PutError(url=str(url), reason=error.errmsg(r))
        return url

    async def update_object(
        self, url: Union[str, URL], data: str, etag: Optional[str] = None
    ) -> None:
        """PUT new data over an existing object, conditional on the etag when we know it"""
        headers = {"Content-Type": 'text/calendar; charset="utf-8"'}
        if etag:
            headers["If-Match"] = etag
        r = await self.client.put(self.url.join(url), data, headers)
        if r.status not in (200, 201, 204):
            raise error.PutError(url=str(url), reason=error.errmsg(r))

    async def delete_object(self, url: Union[str, URL]) -> None:
        r = await self.client.delete(self.url.join(url))
        ## already gone is fine
        if r.status not in (200, 204, 404):
            raise error.DeleteError(url=str(url), reason=error.errmsg(r))
