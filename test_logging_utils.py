#!/usr/bin/env python3
"""
Tests for logger setup helpers
"""

import logging
import os

from logging_utils import (
    close_execution_logger,
    configure_logging,
    execution_log_path,
    execution_logger,
    get_app_logger,
    get_execution_logger,
    level_from_name,
)


def test_level_from_name():
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name("WARNING") == logging.WARNING
    assert level_from_name("nonsense") == logging.INFO
    assert level_from_name(None) == logging.INFO


def test_get_app_logger_is_idempotent(tmp_path):
    log_file = str(tmp_path / "logs" / "reaper.log")
    first = get_app_logger("test_reaper_logger", log_file=log_file)
    second = get_app_logger("test_reaper_logger", log_file=log_file)

    assert first is second
    assert len(first.handlers) == 2
    first.info("cycle done")
    for handler in first.handlers:
        handler.flush()
    with open(log_file) as f:
        assert "cycle done" in f.read()


def test_configure_logging_sets_level_for_module_loggers():
    root = logging.getLogger()
    original_level = root.level
    try:
        assert configure_logging("WARNING") is root
        assert logging.getLogger("kubernetes_clients").getEffectiveLevel() == logging.WARNING
        assert root.handlers
    finally:
        root.setLevel(original_level)


def test_execution_log_path():
    assert execution_log_path("/tmp/logs", "daily", 17, 2) == os.path.join("/tmp/logs", "_flow.daily.17.2.log")


def test_execution_logger_writes_only_to_its_file(tmp_path):
    log = get_execution_logger(str(tmp_path), "daily", 5)
    try:
        assert not log.propagate
        assert [type(h) for h in log.handlers] == [logging.FileHandler]
        log.info("job started")
    finally:
        close_execution_logger(log)

    with open(execution_log_path(str(tmp_path), "daily", 5, 0)) as f:
        assert "job started" in f.read()


def test_close_execution_logger_closes_file_handler(tmp_path):
    log = get_execution_logger(str(tmp_path), "daily", 6)
    handler = log.handlers[0]

    close_execution_logger(log)

    assert log.handlers == []
    assert handler.stream is None


def test_execution_log_is_truncated_on_reopen(tmp_path):
    with execution_logger(str(tmp_path), "daily", 7) as log:
        log.info("first attempt output")
    with execution_logger(str(tmp_path), "daily", 7) as log:
        log.info("second run output")

    with open(execution_log_path(str(tmp_path), "daily", 7, 0)) as f:
        content = f.read()
    assert "second run output" in content
    assert "first attempt output" not in content
