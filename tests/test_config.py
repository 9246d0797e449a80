#!/usr/bin/env python
import json
import logging

import pytest

from tasksync.config import ConnectionConfig
from tasksync.config import config_section
from tasksync.config import load_connection_config
from tasksync.config import read_config

APP_SETTINGS = {
    "isEnabled": True,
    "caldavUrl": "https://dav.example.com/dav/",
    "calendarName": "Work",
    "username": "alice",
    "password": "s3cret",
    "syncTodos": False,
}


class TestConnectionConfig:
    def test_defaults(self):
        cfg = ConnectionConfig()
        assert not cfg.enabled
        assert not cfg.sync_todos_enabled
        assert not cfg.is_valid()

    def test_is_valid(self):
        cfg = ConnectionConfig.from_dict(APP_SETTINGS)
        assert cfg.is_valid()
        for missing in ("caldavUrl", "calendarName", "username", "password"):
            settings = dict(APP_SETTINGS)
            settings[missing] = ""
            assert not ConnectionConfig.from_dict(settings).is_valid()
        assert not ConnectionConfig.from_dict({**APP_SETTINGS, "isEnabled": False}).is_valid()

    def test_from_dict_app_keys(self):
        cfg = ConnectionConfig.from_dict(APP_SETTINGS)
        assert cfg == ConnectionConfig(
            enabled=True,
            server_url="https://dav.example.com/dav/",
            calendar_name="Work",
            username="alice",
            password="s3cret",
            sync_todos_enabled=False,
        )

    def test_from_dict_own_keys(self):
        cfg = ConnectionConfig.from_dict(
            {
                "enabled": "yes",
                "server_url": "https://dav.example.com/",
                "calendar_name": "Work",
                "username": "alice",
                "password": "s3cret",
                "sync_todos_enabled": "1",
                "unrelated": 42,
            }
        )
        assert cfg.enabled is True
        assert cfg.sync_todos_enabled is True
        assert cfg.server_url == "https://dav.example.com/"

    def test_cache_key(self):
        cfg = ConnectionConfig.from_dict(APP_SETTINGS)
        assert cfg.cache_key == ("https://dav.example.com/dav/", "alice", "s3cret")

    def test_password_is_never_shown(self, caplog):
        cfg = ConnectionConfig.from_dict(APP_SETTINGS)
        assert "s3cret" not in repr(cfg)
        assert "s3cret" not in str(cfg)
        assert "password='***'" in repr(cfg)
        assert cfg.redacted().password == "***"
        assert cfg.redacted().username == "alice"
        assert ConnectionConfig().redacted().password is None
        with caplog.at_level(logging.DEBUG):
            logging.getLogger("tasksync").debug(f"config: {cfg}")
        assert "s3cret" not in caplog.text

    def test_frozen(self):
        cfg = ConnectionConfig()
        with pytest.raises(AttributeError):
            cfg.password = "x"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TASKSYNC_URL", "https://dav.example.com/")
        monkeypatch.setenv("TASKSYNC_USERNAME", "alice")
        monkeypatch.setenv("TASKSYNC_PASSWORD", "s3cret")
        monkeypatch.setenv("TASKSYNC_CALENDAR", "Work")
        monkeypatch.setenv("TASKSYNC_SYNC_TODOS", "true")
        cfg = ConnectionConfig.from_env()
        assert cfg.is_valid()
        assert cfg.sync_todos_enabled

    def test_from_env_without_url(self, monkeypatch):
        monkeypatch.delenv("TASKSYNC_URL", raising=False)
        cfg = ConnectionConfig.from_env()
        assert not cfg.enabled
        assert not cfg.is_valid()


class TestConfigFiles:
    def test_config_section_inherits(self):
        config = {
            "default": {"inherits": "base", "calendar_name": "Work"},
            "base": {"server_url": "https://dav.example.com/", "calendar_name": "Base"},
        }
        assert config_section(config, "default") == {
            "server_url": "https://dav.example.com/",
            "calendar_name": "Work",
        }
        assert config_section(config, "missing") == {}

    def test_read_json(self, tmp_path):
        fn = tmp_path / "config.json"
        fn.write_text(json.dumps({"default": APP_SETTINGS}))
        assert read_config(str(fn)) == {"default": APP_SETTINGS}

    def test_read_yaml(self, tmp_path):
        pytest.importorskip("yaml")
        fn = tmp_path / "config.yaml"
        fn.write_text("default:\n  caldavUrl: https://dav.example.com/\n  username: alice\n")
        assert read_config(str(fn)) == {
            "default": {"caldavUrl": "https://dav.example.com/", "username": "alice"}
        }

    def test_missing_file(self, tmp_path, caplog):
        with caplog.at_level(logging.INFO, logger="tasksync"):
            assert read_config(str(tmp_path / "nope.json")) == {}
        assert "no config file found" in caplog.text

    def test_broken_file(self, tmp_path):
        fn = tmp_path / "config.json"
        fn.write_text("{ this: is: not: [valid")
        assert read_config(str(fn)) == {}

    def test_default_locations(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".config" / "tasksync").mkdir(parents=True)
        (tmp_path / ".config" / "tasksync" / "config.json").write_text(
            json.dumps({"default": {"username": "alice"}})
        )
        assert read_config() == {"default": {"username": "alice"}}

    def test_load_connection_config(self, tmp_path):
        fn = tmp_path / "config.json"
        fn.write_text(json.dumps({"default": APP_SETTINGS, "other": {"inherits": "default", "calendarName": "Home"}}))
        assert load_connection_config(str(fn)).calendar_name == "Work"
        other = load_connection_config(str(fn), section="other")
        assert other.calendar_name == "Home"
        assert other.username == "alice"

    def test_load_flat_file(self, tmp_path):
        fn = tmp_path / "config.json"
        fn.write_text(json.dumps(APP_SETTINGS))
        assert load_connection_config(str(fn)).is_valid()

    def test_load_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TASKSYNC_URL", "https://env.example.com/")
        cfg = load_connection_config(str(tmp_path / "nope.json"))
        assert cfg.server_url == "https://env.example.com/"
