"""Unit tests for logging setup."""

import io
import logging
from contextlib import contextmanager

from rich.logging import RichHandler

from cache_dance.logger import is_rich_enabled, setup_logging


@contextmanager
def bare_root_logger():
    """Detach root handlers (including pytest's capture handlers) temporarily."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    try:
        yield root
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_plain_handler_by_default():
    stream = io.StringIO()
    with bare_root_logger() as root:
        setup_logging(logging.INFO, stream=stream)
        (handler,) = root.handlers
        logging.getLogger("cache_dance.test").info("Injected 2 cache(s)")

    assert isinstance(handler, logging.StreamHandler)
    assert not isinstance(handler, RichHandler)
    assert "INFO  | Injected 2 cache(s)" in stream.getvalue()


def test_debug_format_includes_location():
    stream = io.StringIO()
    with bare_root_logger():
        setup_logging(logging.DEBUG, stream=stream)
        logging.getLogger("cache_dance.test").debug("details")

    assert "cache_dance.test" in stream.getvalue()
    assert "test_logger.py" in stream.getvalue()


def test_rich_handler_when_enabled(monkeypatch):
    monkeypatch.setenv("CACHE_DANCE_RICH_UI", "1")
    assert is_rich_enabled()
    with bare_root_logger() as root:
        setup_logging(stream=io.StringIO())
        handlers = root.handlers[:]
    assert isinstance(handlers[0], RichHandler)


def test_existing_handlers_are_kept():
    existing = logging.NullHandler()
    with bare_root_logger() as root:
        root.addHandler(existing)
        setup_logging("warning")
        handlers = root.handlers[:]
        level = root.level
    assert handlers == [existing]
    assert level == logging.WARNING


def test_log_level_env_override(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "error")
    with bare_root_logger() as root:
        setup_logging(logging.DEBUG, stream=io.StringIO())
        level = root.level
    assert level == logging.ERROR
