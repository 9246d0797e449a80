#!/usr/bin/env python
from typing import Optional
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import unquote
from urllib.parse import urlparse


class URL:
    """
    Thin wrapper around a parsed URL.  Everything that accepts a URL
    in this package accepts a URL object or a string, and hrefs from
    the server may be full URLs or absolute paths:

    1) a fully qualified URL, i.e. "https://dav.example.com/dav/calendars/me/work/"

    2) an absolute path, i.e. "/dav/calendars/me/work/"

    3) a path relative to the current URL, i.e. "work/"
    """

    def __init__(self, url: Union[str, ParseResult]) -> None:
        if isinstance(url, ParseResult):
            self.url_parsed = url
        else:
            self.url_parsed = urlparse(url)

    @classmethod
    def objectify(cls, url: Union["URL", str, ParseResult, None]) -> Optional["URL"]:
        if url is None or isinstance(url, URL):
            return url
        return URL(url)

    def __getattr__(self, attr: str):
        if "url_parsed" not in vars(self):
            raise AttributeError(attr)
        return getattr(self.url_parsed, attr)

    def __str__(self) -> str:
        return self.url_parsed.geturl()

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def __bool__(self) -> bool:
        return bool(str(self))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (str, URL)):
            return str(self.canonical()) == str(URL.objectify(other).canonical())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(str(self.canonical()))

    def canonical(self) -> "URL":
        """No double slashes, no trailing slash, no credentials"""
        path = self.path.replace("//", "/").rstrip("/")
        netloc = self.hostname or ""
        if self.port:
            netloc = "%s:%s" % (netloc, self.port)
        return URL(ParseResult(self.scheme, netloc, path, "", self.query, ""))

    def strip_trailing_slash(self) -> "URL":
        if str(self).endswith("/"):
            return URL(str(self)[:-1])
        return self

    def last_segment(self) -> str:
        """
        The last path segment, unquoted.  Calendars without a display
        name are known by this, i.e. "work" for ".../calendars/me/work/"
        """
        path = self.path
        if path.endswith("/"):
            path = path[:-1]
        return unquote(path[path.rfind("/") + 1 :])

    def join(self, path: Union["URL", str, None]) -> "URL":
        """
        Assumes this object is the base URL.  A relative path is
        appended to the base path, an absolute path replaces it, and a
        fully qualified URL is returned as it is (some servers put the
        calendar home on another host than the root URL).
        """
        if not path or not str(path):
            return self
        path = URL.objectify(path)
        if path.scheme and path.hostname:
            return path
        if path.path.startswith("/"):
            ret_path = path.path
        else:
            sep = "" if self.path.endswith("/") else "/"
            ret_path = "%s%s%s" % (self.path, sep, path.path)
        return URL(
            ParseResult(
                self.scheme,
                self.netloc,
                ret_path,
                path.params,
                path.query,
                path.fragment,
            )
        )
