#!/usr/bin/env python
"""
The sync operations: create, update, complete and delete calendar
objects for tasks, and check a connection.

Every verb resolves the configured calendar through the connection
cache, then runs locate, mutate and write in sequence.  Nothing is
kept between calls except what the cache holds.

Errors leaving a verb are SyncError subclasses.  An object that is
not on the server, or that can't be parsed, is not an error: it's
logged and the verb returns.
"""
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Tuple

import icalendar

from tasksync.cache import ConnectionCache
from tasksync.cache import TRANSPORT_ERRORS
from tasksync.cache import network_error
from tasksync.cache import redact
from tasksync.collection import Calendar
from tasksync.config import ConnectionConfig
from tasksync.lib import error
from tasksync.lib import vcal
from tasksync.models import ConnectionTestResult
from tasksync.models import EventChanges
from tasksync.models import EventRecord
from tasksync.models import RemoteCalendarObject
from tasksync.models import TodoChanges
from tasksync.models import TodoRecord
from tasksync.models import TodoStatus
from tasksync.models import generate_uid
from tasksync.notify import LoggingNotifier
from tasksync.notify import Notifier
from tasksync.notify import NotifyKind
from tasksync.notify import safe_notify
from tasksync.search import find_by_uid

log = logging.getLogger("tasksync")


def _now_ms() -> int:
    return int(time.time() * 1000)


class CalendarSync:
    """
    Pushes task changes to one CalDAV calendar per configuration.

    Args:
        cache: connection cache to use; one is created if not given.
        notifier: where user-facing errors go.  Defaults to the cache's
            notifier, or to the log.
        clock: returns "now" in epoch milliseconds.
        uid_factory: makes UIDs for records given without one.
    """

    def __init__(
        self,
        cache: Optional[ConnectionCache] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], int]] = None,
        uid_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        if notifier is None:
            notifier = cache.notifier if cache is not None else LoggingNotifier()
        self.notifier = notifier
        self.cache = cache if cache is not None else ConnectionCache(notifier=notifier)
        self.clock = clock or _now_ms
        self.uid_factory = uid_factory or generate_uid

    async def aclose(self) -> None:
        await self.cache.aclose()

    # ==================== Shared steps ====================

    @contextmanager
    def _network_errors(self, cfg: ConnectionConfig) -> Iterator[None]:
        """Transport failures in the block become a notified NetworkError"""
        try:
            yield
        except TRANSPORT_ERRORS as err:
            wrapped = network_error(err, cfg)
            safe_notify(
                self.notifier, NotifyKind.ERROR, wrapped.message, {"url": cfg.server_url}
            )
            raise wrapped from err

    async def _writable_calendar(self, cfg: ConnectionConfig) -> Calendar:
        calendar = await self.cache.get_calendar(cfg)
        if calendar.read_only:
            message = f'Calendar "{calendar.name}" is read-only'
            safe_notify(
                self.notifier, NotifyKind.ERROR, message, {"calendarName": calendar.name}
            )
            raise error.CalendarReadOnlyError(message)
        return calendar

    async def _find(
        self, cfg: ConnectionConfig, calendar: Calendar, uid: str, component_type: str
    ) -> Optional[RemoteCalendarObject]:
        """The first object with the uid, or None with a warning"""
        with self._network_errors(cfg):
            found = await find_by_uid(calendar, uid, component_type)
        if not found:
            log.warning(f"{component_type} {uid} not found in {calendar.name}, nothing to do")
            return None
        if len(found) > 1:
            error.weirdness(f"{len(found)} objects with uid {uid}, only the first is touched")
        return found[0]

    def _parse(
        self, obj: RemoteCalendarObject, component_type: str
    ) -> Tuple[Optional[icalendar.Calendar], Optional[icalendar.cal.Component]]:
        try:
            tree = vcal.parse_component(obj.data)
            component = vcal.find_subcomponent(tree, component_type)
            if component is None:
                raise error.MalformedRemoteObjectError(f"No {component_type} in {obj.url}")
        except error.MalformedRemoteObjectError as err:
            log.error(f"{err.message}; {obj.uid} left as it is")
            return None, None
        return tree, component

    async def _store(
        self,
        cfg: ConnectionConfig,
        obj: RemoteCalendarObject,
        tree: icalendar.Calendar,
        component: icalendar.cal.Component,
    ) -> bool:
        """Stamp the modification, bump SEQUENCE and write the object back"""
        if obj.capabilities.update is None:
            log.warning(f"{obj.url} can't be updated, {obj.uid} left as it is")
            return False
        now = self.clock()
        vcal.set_utc_datetime(component, "LAST-MODIFIED", now)
        vcal.set_utc_datetime(component, "DTSTAMP", now)
        seqno = vcal.bump_sequence(component)
        with self._network_errors(cfg):
            await obj.capabilities.update(vcal.serialize(tree))
        log.debug(f"{obj.uid} written with SEQUENCE {seqno} at {vcal.format_utc(now)}")
        return True

    async def _delete(self, cfg: ConnectionConfig, uid: str, component_type: str) -> None:
        ## no read-only check, deleting is always attempted
        calendar = await self.cache.get_calendar(cfg)
        obj = await self._find(cfg, calendar, uid, component_type)
        if obj is None:
            return
        if obj.capabilities.delete is None:
            log.warning(f"{obj.url} can't be deleted, {uid} left as it is")
            return
        with self._network_errors(cfg):
            await obj.capabilities.delete()
        log.info(f"deleted {component_type} {uid}")

    # ==================== Events ====================

    async def create_event(self, cfg: ConnectionConfig, record: EventRecord) -> str:
        """
        Write a new VEVENT.

        Returns:
            The UID of the event, generated if the record has none
        """
        calendar = await self._writable_calendar(cfg)
        uid = record.uid or self.uid_factory()
        data = vcal.build_event(
            uid,
            record.summary,
            record.start,
            record.end,
            description=record.description,
            now=self.clock(),
        )
        with self._network_errors(cfg):
            await calendar.create_object(uid, data)
        log.info(f"created event {uid}")
        return uid

    async def update_event(
        self, cfg: ConnectionConfig, uid: str, changes: EventChanges
    ) -> None:
        """
        Apply changes to the event with the uid.  A summary equal to the
        current one is no change; start, end and description are set
        whenever they are given.  Nothing is written if nothing changed.
        """
        calendar = await self._writable_calendar(cfg)
        obj = await self._find(cfg, calendar, uid, "VEVENT")
        if obj is None:
            return
        tree, event = self._parse(obj, "VEVENT")
        if event is None:
            return

        changed = False
        if changes.summary is not None and vcal.get_text(event, "SUMMARY") != changes.summary:
            vcal.set_property(event, "SUMMARY", changes.summary)
            changed = True
        if changes.start is not None:
            vcal.set_utc_datetime(event, "DTSTART", changes.start)
            changed = True
        if changes.end is not None:
            vcal.set_utc_datetime(event, "DTEND", changes.end)
            changed = True
        if changes.description is not None:
            vcal.set_property(event, "DESCRIPTION", changes.description)
            changed = True

        if not changed:
            log.debug(f"event {uid} is up to date")
            return
        if await self._store(cfg, obj, tree, event):
            log.info(f"updated event {uid}")

    async def delete_event(self, cfg: ConnectionConfig, uid: str) -> None:
        await self._delete(cfg, uid, "VEVENT")

    # ==================== Todos ====================

    async def create_todo(self, cfg: ConnectionConfig, record: TodoRecord) -> str:
        """
        Write a new VTODO.

        Returns:
            The UID of the todo, generated if the record has none
        """
        calendar = await self._writable_calendar(cfg)
        uid = record.uid or self.uid_factory()
        data = vcal.build_todo(
            uid,
            record.summary,
            status=record.status,
            description=record.description,
            priority=record.priority,
            due=record.due,
            percent_complete=record.percent_complete,
            now=self.clock(),
        )
        with self._network_errors(cfg):
            await calendar.create_object(uid, data)
        log.info(f"created todo {uid}")
        return uid

    async def update_todo(
        self, cfg: ConnectionConfig, uid: str, changes: TodoChanges
    ) -> None:
        """
        Apply changes to the todo with the uid.  Summary, priority,
        percent-complete and status are compared with the current
        values; description and due are set whenever they are given.

        A status change to COMPLETED stamps COMPLETED with the current
        time, a change away from it removes the stamp.
        """
        calendar = await self._writable_calendar(cfg)
        obj = await self._find(cfg, calendar, uid, "VTODO")
        if obj is None:
            return
        tree, todo = self._parse(obj, "VTODO")
        if todo is None:
            return

        changed = False
        if changes.summary is not None and vcal.get_text(todo, "SUMMARY") != changes.summary:
            vcal.set_property(todo, "SUMMARY", changes.summary)
            changed = True
        if changes.description is not None:
            vcal.set_property(todo, "DESCRIPTION", changes.description)
            changed = True
        if changes.priority is not None and vcal.get_int(todo, "PRIORITY") != changes.priority:
            vcal.set_property(todo, "PRIORITY", changes.priority)
            changed = True
        if changes.due is not None:
            vcal.set_utc_datetime(todo, "DUE", changes.due)
            changed = True
        if (
            changes.percent_complete is not None
            and vcal.get_int(todo, "PERCENT-COMPLETE") != changes.percent_complete
        ):
            vcal.set_property(todo, "PERCENT-COMPLETE", changes.percent_complete)
            changed = True
        if changes.status is not None and vcal.get_text(todo, "STATUS") != changes.status.value:
            vcal.set_property(todo, "STATUS", changes.status.value)
            if changes.status is TodoStatus.COMPLETED:
                vcal.set_utc_datetime(todo, "COMPLETED", self.clock())
            else:
                todo.pop("COMPLETED", None)
            changed = True

        if not changed:
            log.debug(f"todo {uid} is up to date")
            return
        if await self._store(cfg, obj, tree, todo):
            log.info(f"updated todo {uid}")

    async def complete_todo(self, cfg: ConnectionConfig, uid: str) -> None:
        await self.update_todo(
            cfg, uid, TodoChanges(status=TodoStatus.COMPLETED, percent_complete=100)
        )

    async def delete_todo(self, cfg: ConnectionConfig, uid: str) -> None:
        await self._delete(cfg, uid, "VTODO")

    # ==================== Connection test ====================

    async def test_connection(self, cfg: ConnectionConfig) -> ConnectionTestResult:
        """
        Connect from scratch and list the calendars of the first
        calendar home.  A configured calendar missing from the list is
        reported in error with success still True; success is False
        only when the server could not be used at all.
        """
        self.cache.invalidate_all()
        if not cfg.server_url:
            return ConnectionTestResult(success=False, error="No server URL configured")

        client = self.cache.client_factory(
            url=cfg.server_url, username=cfg.username, password=cfg.password
        )
        try:
            homes = await client.connect()
            if not homes:
                return ConnectionTestResult(success=False, error="No calendar home found")
            names = [calendar.name for calendar in await homes[0].calendars()]
        except Exception as err:
            ## reported to the caller, who shows it to the user
            message = redact(str(err) or err.__class__.__name__, cfg)
            log.info(f"connection test against {cfg.server_url} failed: {message}")
            return ConnectionTestResult(success=False, error=message)
        finally:
            await client.close()

        if cfg.calendar_name and cfg.calendar_name not in names:
            return ConnectionTestResult(
                success=True,
                calendars=names,
                error=f'Calendar "{cfg.calendar_name}" not found. Available: {", ".join(names)}',
            )
        return ConnectionTestResult(success=True, calendars=names)
