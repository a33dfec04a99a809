#!/usr/bin/env python3
"""
Shared logger setup helpers for the reaper and recommender modules.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Optional


def level_from_name(name: Optional[str], default: int = logging.INFO) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def get_app_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            # Keep console logging even if file logging is unavailable.
            logger.warning(f"File logging disabled for {log_file}: {e}")

    return logger


def configure_logging(level_name: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Attach handlers to the root logger so every module's logger is shown."""
    level = level_from_name(level_name)
    root = get_app_logger("", level=level, log_file=log_file)
    root.setLevel(level)
    return root


def execution_log_path(log_dir: str, flow_id: str, execution_id: int, attempt: int = 0) -> str:
    """Local file a single execution attempt writes its log lines to."""
    return os.path.join(log_dir, f"_flow.{flow_id}.{execution_id}.{attempt}.log")


def get_execution_logger(
    log_dir: str,
    flow_id: str,
    execution_id: int,
    attempt: int = 0,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Logger writing only to the execution's own log file.

    The file is truncated when opened. Call close_execution_logger when the
    attempt is done, otherwise the file handle stays open.
    """
    logger = logging.getLogger(f"execution.{flow_id}.{execution_id}.{attempt}")
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False
    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(execution_log_path(log_dir, flow_id, execution_id, attempt), mode="w")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(file_handler)
    return logger


def close_execution_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@contextmanager
def execution_logger(
    log_dir: str,
    flow_id: str,
    execution_id: int,
    attempt: int = 0,
    level: int = logging.INFO,
) -> Iterator[logging.Logger]:
    logger = get_execution_logger(log_dir, flow_id, execution_id, attempt, level)
    try:
        yield logger
    finally:
        close_execution_logger(logger)
