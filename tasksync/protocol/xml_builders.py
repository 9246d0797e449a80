"""
Pure functions for building CalDAV XML request bodies.
"""
from __future__ import annotations

from lxml import etree

from tasksync.elements import cdav
from tasksync.elements import dav
from tasksync.elements.base import BaseElement
from tasksync.lib import error


def _tostring(root: BaseElement) -> bytes:
    return etree.tostring(
        root.xmlelement(),
        encoding="utf-8",
        xml_declaration=True,
        pretty_print=error.debug_dump_communication,
    )


def build_propfind_body(props: list[BaseElement]) -> bytes:
    """
    Build PROPFIND request body XML.

    Args:
        props: Property elements to ask for, i.e. ``[dav.DisplayName()]``

    Returns:
        UTF-8 encoded XML bytes
    """
    return _tostring(dav.Propfind() + (dav.Prop() + props))


def build_uid_query_body(uid: str, comp_type: str = "VEVENT") -> bytes:
    """
    Build a calendar-query REPORT body finding objects by UID.

    The filter is VCALENDAR -> comp_type -> prop-filter UID ->
    text-match uid, and the etag and the calendar data are asked for.

    Args:
        uid: The UID to look for
        comp_type: VEVENT or VTODO

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [dav.GetEtag(), cdav.CalendarData()]
    match = cdav.PropFilter("UID") + cdav.TextMatch(uid)
    vcalendar = cdav.CompFilter("VCALENDAR") + (
        cdav.CompFilter(comp_type.upper()) + match
    )
    root = cdav.CalendarQuery() + [prop, cdav.Filter() + vcalendar]
    return _tostring(root)
