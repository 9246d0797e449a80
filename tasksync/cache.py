"""
Authenticated sessions and resolved calendars, kept between sync
operations.

The cache is owned by the hosting application: construct one, hand it
to CalendarSync, and aclose() it on shutdown.
"""
import asyncio
import logging
from dataclasses import dataclass
from dataclasses import field
from types import TracebackType
from typing import Callable, Dict, List, Optional, Tuple

from niquests.exceptions import RequestException

from tasksync.collection import Calendar
from tasksync.collection import CalendarHome
from tasksync.config import ConnectionConfig
from tasksync.davclient import AsyncDAVClient
from tasksync.lib import error
from tasksync.notify import LoggingNotifier
from tasksync.notify import Notifier
from tasksync.notify import NotifyKind
from tasksync.notify import safe_notify

log = logging.getLogger("tasksync")

## Everything the transport may throw at us
TRANSPORT_ERRORS = (RequestException, error.DAVError, OSError, asyncio.TimeoutError)


def redact(text: str, cfg: ConnectionConfig) -> str:
    """The text with the password, should it show up, blanked out"""
    if cfg.password:
        return text.replace(cfg.password, "***")
    return text


def network_error(err: BaseException, cfg: ConnectionConfig) -> error.NetworkError:
    """Wrap a transport failure, keeping the password out of the message"""
    detail = redact(str(err) or err.__class__.__name__, cfg)
    return error.NetworkError(f"Network error: {detail}", cause=err)


@dataclass
class Session:
    client: AsyncDAVClient
    homes: List[CalendarHome]
    calendars: Dict[str, Calendar] = field(default_factory=dict)


class ConnectionCache:
    """
    Sessions keyed by (server_url, username, password), and per session
    the calendars resolved by name.

    Concurrent misses for one key wait for a single handshake.  Failed
    handshakes are not cached.
    """

    def __init__(
        self,
        client_factory: Callable[..., AsyncDAVClient] = AsyncDAVClient,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.client_factory = client_factory
        self.notifier = notifier or LoggingNotifier()
        self._sessions: Dict[Tuple, Session] = {}
        self._locks: Dict[Tuple, asyncio.Lock] = {}
        self._dropped: List[Session] = []

    async def __aenter__(self) -> "ConnectionCache":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()

    def __len__(self) -> int:
        return len(self._sessions)

    def _not_configured(self) -> error.NotConfiguredError:
        safe_notify(self.notifier, NotifyKind.ERROR, "CalDAV Calendar is not configured")
        return error.NotConfiguredError("Not configured")

    async def _connect(self, cfg: ConnectionConfig) -> Session:
        log.debug(f"connecting with {cfg!r}")
        client = self.client_factory(
            url=cfg.server_url, username=cfg.username, password=cfg.password
        )
        try:
            homes = await client.connect()
            if not homes:
                raise error.NetworkError("No calendar home found")
        except error.NetworkError as err:
            await client.close()
            safe_notify(
                self.notifier, NotifyKind.ERROR, err.message, {"url": cfg.server_url}
            )
            raise
        except TRANSPORT_ERRORS as err:
            await client.close()
            wrapped = network_error(err, cfg)
            safe_notify(
                self.notifier, NotifyKind.ERROR, wrapped.message, {"url": cfg.server_url}
            )
            raise wrapped from err
        return Session(client=client, homes=homes)

    async def get_session(self, cfg: ConnectionConfig) -> Session:
        """
        The cached session for the config's connection parameters, or a
        freshly connected one.

        Raises:
            NotConfiguredError: the config is disabled or incomplete
            NetworkError: the connection failed
        """
        if not cfg.is_valid():
            raise self._not_configured()
        key = cfg.cache_key
        session = self._sessions.get(key)
        if session is not None:
            return session
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            session = self._sessions.get(key)
            if session is None:
                session = await self._connect(cfg)
                self._sessions[key] = session
                log.debug(f"new session for {cfg.server_url} as {cfg.username}")
        return session

    async def get_calendar(self, cfg: ConnectionConfig) -> Calendar:
        """
        The calendar named in the config.  The first calendar of the
        first calendar home whose name matches is taken, and remembered.

        Raises:
            NotConfiguredError, NetworkError as get_session
            CalendarNotFoundError: no calendar by that name
        """
        session = await self.get_session(cfg)
        calendar = session.calendars.get(cfg.calendar_name)
        if calendar is not None:
            return calendar

        try:
            calendars = await session.homes[0].calendars()
        except TRANSPORT_ERRORS as err:
            wrapped = network_error(err, cfg)
            safe_notify(
                self.notifier, NotifyKind.ERROR, wrapped.message, {"url": cfg.server_url}
            )
            raise wrapped from err

        for calendar in calendars:
            if calendar.name == cfg.calendar_name:
                session.calendars[cfg.calendar_name] = calendar
                return calendar

        safe_notify(
            self.notifier,
            NotifyKind.ERROR,
            f'Calendar "{cfg.calendar_name}" not found',
            {"calendarName": cfg.calendar_name},
        )
        raise error.CalendarNotFoundError(f'Calendar "{cfg.calendar_name}" not found')

    def invalidate_all(self) -> None:
        """
        Forget all sessions.  The next call connects again.  Operations
        already running keep using the dropped clients, so those are
        only closed by aclose().
        """
        dropped = list(self._sessions.values())
        self._sessions.clear()
        self._locks.clear()
        if dropped:
            log.debug(f"dropping {len(dropped)} cached session(s)")
            self._dropped.extend(dropped)

    async def aclose(self) -> None:
        """Close every client, cached or dropped"""
        sessions = list(self._sessions.values()) + self._dropped
        self._sessions.clear()
        self._locks.clear()
        self._dropped = []
        for session in sessions:
            await session.client.close()
