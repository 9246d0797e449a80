#!/usr/bin/env python
"""
Async CalDAV client.

This is the transport: one niquests session per client, with HTTP
Basic authentication and the client identification header injected
into every request.  The root-URL connect step (principal and calendar
home discovery) lives here as well; everything about calendars lives
in collection.py.
"""
import logging
import sys
from collections.abc import Mapping
from types import TracebackType
from typing import TYPE_CHECKING, List, Optional, Union
from urllib.parse import quote

from lxml import etree
from niquests import AsyncSession
from niquests.models import Response

from tasksync import __version__
from tasksync.elements import cdav
from tasksync.elements import dav
from tasksync.elements.base import BaseElement
from tasksync.lib import error
from tasksync.lib.python_utilities import to_normal_str, to_wire
from tasksync.lib.url import URL
from tasksync.protocol import build_propfind_body, parse_propfind_response
from tasksync.requests import PRODUCT_ID, HTTPBasicClientAuth

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

if TYPE_CHECKING:
    from tasksync.collection import CalendarHome

log = logging.getLogger("tasksync")


def _pretty(body: Union[str, bytes]) -> Union[str, bytes]:
    """XML bodies indented, anything else as it is"""
    if not body:
        return b""
    try:
        return etree.tostring(etree.fromstring(to_wire(body)), pretty_print=True)
    except etree.XMLSyntaxError:
        return body


class AsyncDAVResponse:
    """
    Response from an async DAV request.  Only keeps what the callers
    need; the XML body is parsed by tasksync.protocol.
    """

    reason: str = ""
    status: int = 0

    def __init__(self, response: Response) -> None:
        self.headers = response.headers
        self.status = response.status_code
        self.reason = getattr(response, "reason", None) or ""
        self.content: bytes = response.content or b""
        log.debug(f"response status: {self.status} {self.reason}")

    @property
    def raw(self) -> str:
        return to_normal_str(self.content)


class AsyncDAVClient:
    """
    Async WebDAV/CalDAV client.

    Use it as an async context manager, or close() it when done:

        async with AsyncDAVClient(url="...", username="...", password="...") as client:
            homes = await client.connect()
    """

    url: URL = None

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        ssl_verify_cert: Union[bool, str] = True,
        headers: Optional[Mapping[str, str]] = None,
        product: str = PRODUCT_ID,
    ) -> None:
        """
        Args:
            url: CalDAV root URL.
            username: Username for Basic authentication.
            password: Password for Basic authentication.
            timeout: Request timeout in seconds.
            ssl_verify_cert: SSL certificate verification (bool or CA bundle path).
            headers: Additional headers for all requests.
            product: Value of the X-Requested-With header.
        """
        self.url = URL.objectify(url)
        self.username = username
        self.password = password
        self.auth = HTTPBasicClientAuth(username, password, product)
        self.timeout = timeout
        self.ssl_verify_cert = ssl_verify_cert
        self.session = AsyncSession()
        self.calendar_homes: List["CalendarHome"] = []

        self.headers: dict[str, str] = {
            "User-Agent": f"tasksync/{__version__}",
        }
        self.headers.update(headers or {})

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the async session."""
        await self.session.close()

    def __repr__(self) -> str:
        return "%s(url=%s, username=%r)" % (
            self.__class__.__name__,
            self.url,
            self.username,
        )

    @staticmethod
    def _build_method_headers(
        method: str, depth: Optional[int] = None, extra_headers: Optional[Mapping[str, str]] = None
    ) -> dict[str, str]:
        """
        Build headers for WebDAV methods.

        Args:
            method: HTTP method name.
            depth: Depth header value (for PROPFIND/REPORT).
            extra_headers: Additional headers to merge.
        """
        headers: dict[str, str] = {}

        if depth is not None:
            headers["Depth"] = str(depth)

        if method in ("PROPFIND", "REPORT"):
            headers["Content-Type"] = 'application/xml; charset="utf-8"'

        if extra_headers:
            headers.update(extra_headers)

        return headers

    async def request(
        self,
        url: Union[str, URL],
        method: str = "GET",
        body: Union[str, bytes] = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncDAVResponse:
        """
        Send an async HTTP request.

        Raises AuthorizationError on 401 and 403.  Anything the
        session raises (connection refused, timeouts, TLS trouble)
        passes through untouched.
        """
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        if not body and "Content-Type" in combined_headers:
            del combined_headers["Content-Type"]

        url_obj = URL.objectify(url)

        ## the Authorization header is added by self.auth, so it never shows up here
        log.debug(
            f"sending request - method={method}, url={str(url_obj)}, headers={combined_headers}\nbody:\n{to_normal_str(body)}"
        )

        r = await self.session.request(
            method,
            str(url_obj),
            data=to_wire(body) if body else None,
            headers=combined_headers,
            auth=self.auth,
            timeout=self.timeout,
            verify=self.ssl_verify_cert,
        )
        response = AsyncDAVResponse(r)

        if response.status in (401, 403):
            raise error.AuthorizationError(
                url=str(url_obj), reason=response.reason or "None given"
            )

        if error.debug_dump_communication:
            self._dump_communication(method, url_obj, combined_headers, body, response)
        return response

    @staticmethod
    def _dump_communication(
        method: str,
        url: URL,
        headers: Mapping[str, str],
        body: Union[str, bytes],
        response: AsyncDAVResponse,
    ) -> None:
        """Write the request and the response to a temporary file, XML pretty-printed"""
        import datetime
        from tempfile import NamedTemporaryFile

        with NamedTemporaryFile(prefix="tasksynccomm", delete=False) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"{method} {url}\n".encode("utf-8"))
            commlog.write(b"\n".join(to_wire(f"{x}: {headers[x]}") for x in headers))
            commlog.write(b"\n\n")
            commlog.write(to_wire(_pretty(body)))
            commlog.write(b"\n<====\n")
            commlog.write(f"{response.status} {response.reason}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(to_wire(f"{x}: {response.headers[x]}") for x in response.headers)
            )
            commlog.write(b"\n\n")
            commlog.write(to_wire(_pretty(response.content)))
            commlog.write(b"\n")

    # ==================== HTTP Method Wrappers ====================

    async def propfind(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncDAVResponse:
        final_headers = self._build_method_headers("PROPFIND", depth, headers)
        return await self.request(url or self.url, "PROPFIND", body, final_headers)

    async def report(
        self,
        url: Union[str, URL, None] = None,
        body: Union[str, bytes] = "",
        depth: int = 0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncDAVResponse:
        final_headers = self._build_method_headers("REPORT", depth, headers)
        return await self.request(url or self.url, "REPORT", body, final_headers)

    async def put(
        self,
        url: Union[str, URL],
        body: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncDAVResponse:
        return await self.request(url, "PUT", body, headers)

    async def delete(
        self,
        url: Union[str, URL],
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncDAVResponse:
        return await self.request(url, "DELETE", "", headers)

    # ==================== Connect step ====================

    async def _href_property(self, url: URL, prop: BaseElement) -> List[str]:
        """
        PROPFIND for a single property holding hrefs, at depth 0.
        Returns an empty list if the server doesn't know the property.
        """
        response = await self.propfind(url, build_propfind_body([prop]), depth=0)
        if response.status >= 400 and response.status != 404:
            raise error.PropfindError(url=str(url), reason=error.errmsg(response))
        for result in parse_propfind_response(response.content, response.status):
            hrefs = result.properties.get(prop.tag)
            if hrefs:
                return hrefs
        return []

    async def connect(self) -> List["CalendarHome"]:
        """
        Find the current user principal and its calendar homes,
        starting from the root URL.  No service discovery beyond that.

        Returns:
            The calendar homes, possibly an empty list
        """
        ## Late import to avoid circular imports
        from tasksync.collection import CalendarHome

        principal = await self._href_property(self.url, dav.CurrentUserPrincipal())
        if principal:
            principal_url = self.url.join(principal[0])
        else:
            log.warning(
                f"current-user-principal property not found, assuming {self.url} is the principal URL"
            )
            principal_url = self.url

        homes = []
        for href in await self._href_property(principal_url, cdav.CalendarHomeSet()):
            ## owncloud gives unquoted @ in the path
            if "@" in href and "://" not in href:
                href = quote(href)
            homes.append(CalendarHome(self, self.url.join(href)))
        self.calendar_homes = homes
        log.debug(f"calendar homes found: {[str(h.url) for h in homes]}")
        return homes
