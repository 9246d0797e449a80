"""
Pure functions for parsing CalDAV XML responses.

All functions in this module take XML bytes in and return structured
data out, with no side effects or I/O.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import unquote

from lxml import etree
from lxml.etree import _Element

from tasksync.elements import cdav
from tasksync.elements import dav
from tasksync.lib import error
from tasksync.lib.url import URL

from .types import CalendarQueryResult
from .types import PropfindResult


def parse_propfind_response(
    body: bytes,
    status_code: int = 207,
) -> list[PropfindResult]:
    """
    Parse a PROPFIND response.

    Args:
        body: Raw XML response bytes
        status_code: HTTP status code of the response

    Returns:
        List of PropfindResult with properties for each resource
    """
    if status_code == 404:
        return []

    if status_code not in (200, 207):
        raise error.PropfindError(reason=f"PROPFIND failed with status {status_code}")

    if not body:
        return []

    results: list[PropfindResult] = []
    for elem in _strip_to_multistatus(_parse_xml(body)):
        if elem.tag != dav.Response.tag:
            continue

        href, propstats, status = _parse_response_element(elem)
        results.append(
            PropfindResult(
                href=href,
                properties=_extract_properties(propstats),
                status=_status_to_code(status),
            )
        )
    return results


def parse_calendar_query_response(
    body: bytes,
    status_code: int = 207,
) -> list[CalendarQueryResult]:
    """
    Parse a calendar-query REPORT response.

    Args:
        body: Raw XML response bytes
        status_code: HTTP status code of the response

    Returns:
        List of CalendarQueryResult with calendar data
    """
    if status_code not in (200, 207):
        raise error.ReportError(reason=f"REPORT failed with status {status_code}")

    if not body:
        return []

    results: list[CalendarQueryResult] = []
    for elem in _strip_to_multistatus(_parse_xml(body)):
        if elem.tag != dav.Response.tag:
            continue

        href, propstats, status = _parse_response_element(elem)
        properties = _extract_properties(propstats)
        results.append(
            CalendarQueryResult(
                href=href,
                etag=properties.get(dav.GetEtag.tag),
                calendar_data=properties.get(cdav.CalendarData.tag),
                status=_status_to_code(status),
            )
        )
    return results


# Helper functions


def _parse_xml(body: bytes) -> _Element:
    try:
        return etree.fromstring(body, etree.XMLParser(remove_blank_text=True))
    except etree.XMLSyntaxError as err:
        raise error.ResponseError(reason=f"Invalid XML from server: {err}") from err


def _strip_to_multistatus(tree: _Element) -> _Element | list[_Element]:
    """
    The general format is:
        <xml><multistatus>
            <response>...</response>
            <response>...</response>
        </multistatus></xml>

    But sometimes multistatus and/or xml element is missing.
    Returns the element(s) containing responses.
    """
    if tree.tag == "xml" and len(tree) > 0 and tree[0].tag == dav.MultiStatus.tag:
        return tree[0]
    if tree.tag == dav.MultiStatus.tag:
        return tree
    return [tree]


def _parse_response_element(
    response: _Element,
) -> tuple[str, list[_Element], str | None]:
    """
    One response should contain one or zero status children, one
    href tag and zero or more propstats.

    Returns:
        Tuple of (href, propstat elements list, status string)
    """
    status: str | None = None
    href: str | None = None
    propstats: list[_Element] = []

    for elem in response:
        if elem.tag == dav.Status.tag:
            status = elem.text
            _validate_status(status)
        elif elem.tag == dav.Href.tag:
            href = unquote(elem.text or "")
            # Absolute URLs are turned into paths
            if ":" in href:
                href = unquote(URL(href).path)
        elif elem.tag == dav.PropStat.tag:
            propstats.append(elem)
        else:
            error.weirdness("unexpected element found in response", elem)

    return (href or "", propstats, status)


def _extract_properties(propstats: list[_Element]) -> dict[str, Any]:
    """
    Properties from propstat elements, as a dict from tag to value.
    Properties the server reports as 404 are skipped.
    """
    properties: dict[str, Any] = {}

    for propstat in propstats:
        status_elem = propstat.find(dav.Status.tag)
        if status_elem is not None and status_elem.text:
            if " 404 " in status_elem.text:
                continue

        prop = propstat.find(dav.Prop.tag)
        if prop is None:
            continue

        for child in prop:
            properties[child.tag] = _element_to_value(child)

    return properties


def _element_to_value(elem: _Element) -> Any:
    """
    Simple elements give their text.  The complex properties we ask
    for are turned into the parts we need.
    """
    tag = elem.tag

    # resourcetype: the child tags, i.e. collection and calendar
    if tag == dav.ResourceType.tag:
        return [child.tag for child in elem]

    # current-user-privilege-set: the tags inside each privilege
    if tag == dav.CurrentUserPrivilegeSet.tag:
        return [
            grant.tag
            for privilege in elem
            if privilege.tag == dav.Privilege.tag
            for grant in privilege
        ]

    # current-user-principal and calendar-home-set: the hrefs
    if tag in (dav.CurrentUserPrincipal.tag, cdav.CalendarHomeSet.tag):
        return [child.text for child in elem if child.tag == dav.Href.tag and child.text]

    if len(elem) == 0:
        return elem.text

    return elem


def _validate_status(status: str | None) -> None:
    """
    status is a string like "HTTP/1.1 404 Not Found".  200, 201, 207
    and 404 are considered good statuses.
    """
    if status is None:
        return

    acceptable = (" 200 ", " 201 ", " 207 ", " 404 ")
    if not any(code in status for code in acceptable):
        raise error.ResponseError(reason=status)


def _status_to_code(status: str | None) -> int:
    if not status:
        return 200

    parts = status.split()
    if len(parts) >= 2:
        try:
            return int(parts[1])
        except ValueError:
            pass

    return 200
