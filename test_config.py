#!/usr/bin/env python3
"""
Tests for settings loading
"""

import config
from config import DEFAULT_CLEANUP_INTERVAL_MINUTES, ReaperSettings, load_settings


def write(tmp_path, text):
    path = tmp_path / "reaper.yaml"
    path.write_text(text)
    return str(path)


def test_no_file_returns_defaults():
    settings = load_settings()
    assert settings == ReaperSettings()


def test_yaml_overrides(tmp_path):
    path = write(tmp_path, """
cleanup_interval_minutes: 5
max_flow_running_minutes: 720
namespace: azkaban
staleness_windows:
  dispatching: 20
  KILLING: 30
""")
    settings = load_settings(path)

    assert settings.cleanup_interval_minutes == 5
    assert settings.max_flow_running_minutes == 720
    assert settings.namespace == "azkaban"
    assert settings.staleness_windows == {"DISPATCHING": 20, "KILLING": 30}


def test_malformed_values_fall_back(tmp_path):
    path = write(tmp_path, """
cleanup_interval_minutes: soon
max_flow_running_minutes: [1, 2]
staleness_windows:
  PREPARING: later
""")
    settings = load_settings(path)

    defaults = ReaperSettings()
    assert settings.cleanup_interval_minutes == defaults.cleanup_interval_minutes
    assert settings.max_flow_running_minutes == defaults.max_flow_running_minutes
    assert settings.staleness_windows == {}


def test_non_positive_interval_falls_back(tmp_path):
    settings = load_settings(write(tmp_path, "cleanup_interval_minutes: 0\n"))
    assert settings.cleanup_interval_minutes == DEFAULT_CLEANUP_INTERVAL_MINUTES


def test_unparsable_or_missing_file_uses_defaults(tmp_path):
    assert load_settings(write(tmp_path, "key: [unclosed\n")) == ReaperSettings()
    assert load_settings(write(tmp_path, "- just\n- a list\n")) == ReaperSettings()
    assert load_settings(str(tmp_path / "missing.yaml")) == ReaperSettings()


def test_env_int_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("SOME_INTERVAL", "ten")
    assert config._env_int("SOME_INTERVAL", 10) == 10
    monkeypatch.setenv("SOME_INTERVAL", "15")
    assert config._env_int("SOME_INTERVAL", 10) == 15
    monkeypatch.delenv("SOME_INTERVAL")
    assert config._env_int("SOME_INTERVAL", 10) == 10
