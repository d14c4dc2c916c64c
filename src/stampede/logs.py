# SPDX-License-Identifier: AGPL-3.0

import logging

from rich.logging import RichHandler

logging.basicConfig(
    format="%(message)s",
    handlers=[RichHandler(level=logging.NOTSET, show_time=False, show_path=False)],
)

logger = logging.getLogger("stampede")


class UniqueLoggingFilter(logging.Filter):
    """Drops records whose message was already logged once."""

    def __init__(self):
        super().__init__()
        self.seen: set[str] = set()

    def filter(self, record):
        message = record.getMessage()
        if message in self.seen:
            return False
        self.seen.add(message)
        return True


# child of `logger`, so it follows the level set by --debug
logger_unique = logging.getLogger("stampede.unique")
logger_unique.addFilter(UniqueLoggingFilter())


def set_level(debug_enabled: bool) -> None:
    logger.setLevel(logging.DEBUG if debug_enabled else logging.INFO)


def debug(text: str) -> None:
    logger.debug(text)


def info(text: str) -> None:
    logger.info(text)


def warn(text: str) -> None:
    logger.warning(text)


def error(text: str) -> None:
    logger.error(text)


def debug_once(text: str) -> None:
    """Log at debug level, at most once per distinct message."""
    logger_unique.debug(text)
