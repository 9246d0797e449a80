#!/usr/bin/env python
"""
Fixtures shared by the tests.

FakeServer is an in-memory CalDAV server, and FakeDAVClient stands in
for AsyncDAVClient on top of it.  Only the HTTP layer is replaced: the
calendar listing, the UID lookup and the reads and writes of the sync
operations run through the real CalendarHome and Calendar code, and
every request is recorded in FakeServer.requests.

Rule: no test should initiate any internet communication.
"""
import asyncio
import itertools
import re
from typing import Dict
from typing import List
from typing import Optional
from unittest.mock import MagicMock
from xml.sax.saxutils import escape

import pytest
from lxml import etree

from tasksync.collection import CalendarHome
from tasksync.config import ConnectionConfig
from tasksync.elements import cdav
from tasksync.lib.url import URL

SERVER_URL = "https://dav.example.com/dav/"
HOME = "/dav/calendars/alice/"
PASSWORD = "s3cret-pa55"


class FakeResponse:
    """Quacks like AsyncDAVResponse"""

    def __init__(
        self, status: int = 200, content: bytes = b"", reason: str = "OK", headers=None
    ) -> None:
        self.status = status
        self.reason = reason
        self.content = content
        self.headers = headers or {}

    @property
    def raw(self) -> str:
        return self.content.decode("utf-8")


def multistatus(*responses: str) -> bytes:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<d:multistatus xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav" '
        'xmlns:oc="http://owncloud.org/ns">' + "".join(responses) + "</d:multistatus>"
    ).encode("utf-8")


def propstat(props: str, status: str = "HTTP/1.1 200 OK") -> str:
    return f"<d:propstat><d:prop>{props}</d:prop><d:status>{status}</d:status></d:propstat>"


class FakeServer:
    """
    Calendars are dicts with a "slug" (the last URL segment), and
    optionally a display "name", a "read_only" flag sent as the
    ownCloud property, and "privileges" sent as the
    current-user-privilege-set.
    """

    def __init__(self, calendars: Optional[List[dict]] = None, homes=(HOME,)) -> None:
        if calendars is None:
            calendars = [{"slug": "work", "name": "Work"}]
        self.calendars = calendars
        self.homes = list(homes)
        self.objects: Dict[str, str] = {}
        self.etags: Dict[str, str] = {}
        self.requests: List[tuple] = []
        self.clients: List["FakeDAVClient"] = []
        self.connects = 0
        self.status_override: Dict[str, int] = {}
        ## requests of these methods wait for the event to be set
        self.gates: Dict[str, asyncio.Event] = {}
        ## raised by every request while set
        self.fail: Optional[BaseException] = None
        self._etag = itertools.count(1)

    def client_factory(self, url, username=None, password=None) -> "FakeDAVClient":
        client = FakeDAVClient(self, url, username, password)
        self.clients.append(client)
        return client

    def count(self, method: str) -> int:
        return len([r for r in self.requests if r[0] == method])

    @property
    def writes(self) -> List[tuple]:
        return [r for r in self.requests if r[0] in ("PUT", "DELETE")]

    def calendar_path(self, slug: str) -> str:
        return f"{HOME}{slug}/"

    def add_object(self, slug: str, uid: str, data: str) -> str:
        path = f"{self.calendar_path(slug)}{uid}.ics"
        self._store(path, data)
        return path

    def data_for(self, uid: str) -> Optional[str]:
        for path, data in self.objects.items():
            if path.endswith(f"/{uid}.ics"):
                return data
        return None

    def _store(self, path: str, data: str) -> None:
        self.objects[path] = data
        self.etags[path] = f'"{next(self._etag)}"'

    def handle(self, method: str, url, body, headers) -> FakeResponse:
        headers = dict(headers or {})
        self.requests.append((method, str(url), body, headers))
        if self.fail is not None:
            raise self.fail
        if method in self.status_override:
            return FakeResponse(self.status_override[method], reason="Oops")
        path = URL.objectify(url).path
        return getattr(self, "_" + method.lower())(path, body, headers)

    def _propfind(self, path, body, headers) -> FakeResponse:
        responses = [
            f"<d:response><d:href>{path}</d:href>"
            + propstat("<d:resourcetype><d:collection/></d:resourcetype>")
            + "</d:response>"
        ]
        for cal in self.calendars:
            props = "<d:resourcetype><d:collection/><c:calendar/></d:resourcetype>"
            if cal.get("name"):
                props += f"<d:displayname>{escape(cal['name'])}</d:displayname>"
            if "read_only" in cal:
                props += f"<oc:read-only>{'true' if cal['read_only'] else 'false'}</oc:read-only>"
            if "privileges" in cal:
                props += (
                    "<d:current-user-privilege-set>"
                    + "".join(f"<d:privilege><d:{p}/></d:privilege>" for p in cal["privileges"])
                    + "</d:current-user-privilege-set>"
                )
            responses.append(
                f"<d:response><d:href>{path}{cal['slug']}/</d:href>{propstat(props)}</d:response>"
            )
        return FakeResponse(207, multistatus(*responses), "Multi-Status")

    def _report(self, path, body, headers) -> FakeResponse:
        ## text-match is a substring match, see RFC 4791 section 9.7.5
        tree = etree.fromstring(body)
        uid = tree.find(".//" + cdav.TextMatch.tag).text
        component = tree.find(".//%s/%s" % (cdav.CompFilter.tag, cdav.CompFilter.tag)).get(
            "name"
        )
        responses = []
        for opath, data in self.objects.items():
            if not opath.startswith(path):
                continue
            if not re.search(f"^UID:.*{re.escape(uid)}", data, re.MULTILINE):
                continue
            if f"BEGIN:{component}" not in data:
                continue
            props = (
                f"<d:getetag>{escape(self.etags[opath])}</d:getetag>"
                f"<c:calendar-data>{escape(data)}</c:calendar-data>"
            )
            responses.append(f"<d:response><d:href>{opath}</d:href>{propstat(props)}</d:response>")
        return FakeResponse(207, multistatus(*responses), "Multi-Status")

    def _put(self, path, body, headers) -> FakeResponse:
        exists = path in self.objects
        if headers.get("If-None-Match") == "*" and exists:
            return FakeResponse(412, reason="Precondition Failed")
        if "If-Match" in headers and self.etags.get(path) != headers["If-Match"]:
            return FakeResponse(412, reason="Precondition Failed")
        self._store(path, body)
        return FakeResponse(204 if exists else 201)

    def _delete(self, path, body, headers) -> FakeResponse:
        if path not in self.objects:
            return FakeResponse(404, reason="Not Found")
        del self.objects[path]
        del self.etags[path]
        return FakeResponse(204, reason="No Content")

    def _get(self, path, body, headers) -> FakeResponse:
        if path not in self.objects:
            return FakeResponse(404, reason="Not Found")
        return FakeResponse(200, self.objects[path].encode("utf-8"))


class FakeDAVClient:
    def __init__(self, server: FakeServer, url, username=None, password=None) -> None:
        self.server = server
        self.url = URL.objectify(url)
        self.username = username
        self.password = password
        self.closed = False

    async def connect(self) -> List[CalendarHome]:
        self.server.connects += 1
        if self.server.fail is not None:
            raise self.server.fail
        return [CalendarHome(self, self.url.join(href)) for href in self.server.homes]

    async def request(self, url, method="GET", body="", headers=None) -> FakeResponse:
        gate = self.server.gates.get(method)
        if gate is not None:
            await gate.wait()
        ## a closed niquests session never answers
        if self.closed:
            raise RuntimeError(f"{method} {url} on a closed client")
        return self.server.handle(method, url, body, headers)

    async def propfind(self, url=None, body="", depth=0, headers=None) -> FakeResponse:
        return await self.request(url or self.url, "PROPFIND", body, headers)

    async def report(self, url=None, body="", depth=0, headers=None) -> FakeResponse:
        return await self.request(url or self.url, "REPORT", body, headers)

    async def put(self, url, body, headers=None) -> FakeResponse:
        return await self.request(url, "PUT", body, headers)

    async def delete(self, url, headers=None) -> FakeResponse:
        return await self.request(url, "DELETE", "", headers)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def cfg() -> ConnectionConfig:
    return ConnectionConfig(
        enabled=True,
        server_url=SERVER_URL,
        calendar_name="Work",
        username="alice",
        password=PASSWORD,
    )


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_server():
    """For tests needing other calendars than the default one"""
    return FakeServer
