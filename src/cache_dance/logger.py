import logging
import os
import sys
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

RICH_UI_ENV = "CACHE_DANCE_RICH_UI"


def is_rich_enabled() -> bool:
    """Check if Rich log output was requested through the environment."""
    return os.environ.get(RICH_UI_ENV, "false").lower() in ("true", "1", "yes")


def setup_logging(
    level: Union[int, str] = logging.INFO, stream=sys.stdout, fmt: Optional[str] = None
):
    """
    Sets up the root logger with a stream handler and basic formatting.
    Uses a Rich handler when CACHE_DANCE_RICH_UI is set, otherwise plain logging
    so CI logs stay greppable.
    Does nothing if handlers are already configured.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    if not root_logger.hasHandlers():
        if is_rich_enabled():
            handler = RichHandler(
                console=Console(file=stream),
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
        else:
            if fmt is None:
                if level == logging.DEBUG:
                    fmt = "%(asctime)s | %(levelname)-5s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
                else:
                    fmt = "%(asctime)s | %(levelname)-5s | %(message)s"

            handler = logging.StreamHandler(stream)
            handler.setFormatter(logging.Formatter(fmt))

        root_logger.addHandler(handler)

    root_logger.setLevel(level)

    # Optionally allow log level override via env var
    env_level = os.environ.get("LOG_LEVEL")
    if env_level:
        root_logger.setLevel(env_level.upper())
