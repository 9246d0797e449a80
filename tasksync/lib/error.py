#!/usr/bin/env python
import logging
import os
from typing import Optional

from tasksync import __version__

## Environment variables prefixed with "TASKSYNC_" other than the
## connection parameters are used for debug purposes.
debug_dump_communication = bool(os.environ.get("TASKSYNC_COMMDUMP", False))
## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("TASKSYNC_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("tasksync")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.INFO)

ERROR_PREFIX = "CalDAV Calendar: "


def errmsg(r) -> str:
    """Utility for formatting a an error response to an error string"""
    return "%s %s\n\n%s" % (r.status, r.reason, r.raw)


def weirdness(*reasons) -> None:
    from tasksync.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")


## DAV layer.  Raised by the client and the calendar handles, carries
## the url and whatever reason the server gave.


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class AuthorizationError(DAVError):
    """
    The server answered 401 or 403.  The url property will contain
    the url in question, the reason property will contain the excuse
    the server sent.
    """

    pass


class PropfindError(DAVError):
    pass


class ReportError(DAVError):
    pass


class PutError(DAVError):
    pass


class DeleteError(DAVError):
    pass


class NotFoundError(DAVError):
    pass


class ResponseError(DAVError):
    pass


## Sync layer.  Every error that leaves a sync operation is one of
## these, and the message always starts with ERROR_PREFIX.


class SyncError(Exception):
    """Base class for errors propagated out of the sync operations."""

    def __init__(self, message: str) -> None:
        if not message.startswith(ERROR_PREFIX):
            message = ERROR_PREFIX + message
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotConfiguredError(SyncError):
    """The configuration is disabled or incomplete.  Do not retry before it is fixed."""

    pass


class CalendarNotFoundError(SyncError):
    pass


class CalendarReadOnlyError(SyncError):
    """The calendar rejects writes.  No request was sent."""

    pass


class NetworkError(SyncError):
    """Transport or server failure.  The caller may retry later."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class MalformedRemoteObjectError(SyncError):
    """
    The object was found on the server but could not be parsed, or
    does not hold the expected component.  Never propagated out of a
    sync operation; it is logged and the operation returns.
    """

    pass
