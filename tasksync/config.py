import json
import logging
import os
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import Any
from typing import Dict
from typing import Optional
from typing import Tuple

log = logging.getLogger("tasksync")

## Keys as the application stores them, and our own
_KEY_ALIASES = {
    "enabled": ("enabled", "isEnabled", "is_enabled"),
    "server_url": ("server_url", "serverUrl", "caldavUrl", "caldav_url", "url"),
    "calendar_name": ("calendar_name", "calendarName", "calendar"),
    "username": ("username", "user"),
    "password": ("password",),
    "sync_todos_enabled": (
        "sync_todos_enabled",
        "syncTodosEnabled",
        "syncTodos",
        "sync_todos",
    ),
}


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Connection parameters for one CalDAV calendar.  A value, never
    modified by the sync core; use dataclasses.replace() for variants.
    """

    enabled: bool = False
    server_url: Optional[str] = None
    calendar_name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    sync_todos_enabled: bool = False

    def is_valid(self) -> bool:
        """Enabled, and every connection parameter given"""
        return bool(
            self.enabled
            and self.server_url
            and self.calendar_name
            and self.username
            and self.password
        )

    @property
    def cache_key(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.server_url, self.username, self.password)

    def redacted(self) -> "ConnectionConfig":
        """A copy safe for logging"""
        return replace(self, password="***" if self.password else None)

    def __repr__(self) -> str:
        return (
            "ConnectionConfig(enabled=%r, server_url=%r, calendar_name=%r, "
            "username=%r, password='***', sync_todos_enabled=%r)"
            % (
                self.enabled,
                self.server_url,
                self.calendar_name,
                self.username,
                self.sync_todos_enabled,
            )
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        kwargs = {}
        for name, aliases in _KEY_ALIASES.items():
            for alias in aliases:
                if alias in data and data[alias] is not None:
                    kwargs[name] = data[alias]
                    break
        for flag in ("enabled", "sync_todos_enabled"):
            if flag in kwargs:
                kwargs[flag] = _truthy(kwargs[flag])
        return cls(**kwargs)

    @classmethod
    def from_env(cls) -> "ConnectionConfig":
        """
        TASKSYNC_URL, TASKSYNC_USERNAME, TASKSYNC_PASSWORD,
        TASKSYNC_CALENDAR and TASKSYNC_SYNC_TODOS.  Enabled when a URL
        is given.
        """
        url = os.environ.get("TASKSYNC_URL")
        return cls(
            enabled=bool(url),
            server_url=url,
            calendar_name=os.environ.get("TASKSYNC_CALENDAR"),
            username=os.environ.get("TASKSYNC_USERNAME"),
            password=os.environ.get("TASKSYNC_PASSWORD"),
            sync_todos_enabled=_truthy(os.environ.get("TASKSYNC_SYNC_TODOS", "")),
        )


def config_section(config: Dict[str, Any], section: str = "default") -> Dict[str, Any]:
    """A section of the config file, with whatever it inherits from other sections"""
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    ret.pop("inherits", None)
    return ret


def read_config(fn: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Read a JSON or YAML config file.  Without a file name, the default
    locations are tried in order and None is returned if none of them
    exist.  A missing or broken file gives an empty dict.
    """
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config"
        for config_file in (
            f"{cfgdir}/tasksync/config.json",
            f"{cfgdir}/tasksync/config.yaml",
            f"{cfgdir}/tasksync.conf",
            "/etc/tasksync.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        with open(fn, "rb") as config_file:
            raw = config_file.read()
    except FileNotFoundError:
        log.info(f"no config file found at {fn}")
        return {}

    try:
        return json.loads(raw)
    except json.decoder.JSONDecodeError:
        pass

    ## yaml is optional and not included in the requirements
    try:
        import yaml
    except ImportError:
        log.error(f"config file {fn} is not valid json, and pyyaml is not installed.")
        return {}
    try:
        return yaml.safe_load(raw) or {}
    except yaml.YAMLError:
        log.error(
            f"config file {fn} exists but is neither valid json nor yaml.  It will be ignored",
            exc_info=True,
        )
        return {}


def load_connection_config(
    fn: Optional[str] = None, section: str = "default"
) -> ConnectionConfig:
    """
    ConnectionConfig from a config file section, falling back to the
    environment when there is no config file
    """
    config = read_config(fn)
    if not config:
        return ConnectionConfig.from_env()
    ## a file without sections is one flat section
    if section not in config:
        return ConnectionConfig.from_dict(config)
    return ConnectionConfig.from_dict(config_section(config, section))
