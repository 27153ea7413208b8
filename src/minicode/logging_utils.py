"""Process logging setup for the CLI and embedding hosts."""

from __future__ import annotations

import sys
from typing import Literal

import loguru
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

from minicode.config import Settings, get_settings

LogProfile = Literal["default", "chat"]

DEFAULT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {extra[scope]} | {message}"

_active: tuple[LogProfile, str] | None = None


def _tag_scope(record: loguru.Record) -> None:
    # Plugin loggers are bound with `plugin=<reference>`; everything else is host code.
    extra = record["extra"]
    extra.setdefault("scope", extra.get("plugin", "host"))


def _chat_sink() -> RichHandler:
    # Replies stream on stdout, so chat logs go to a stderr console.
    return RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(
    *,
    profile: LogProfile = "default",
    level: str | None = None,
    settings: Settings | None = None,
) -> None:
    """Install the loguru sink for `profile`; repeated calls with the same setup are no-ops."""

    global _active
    resolved_level = (level or (settings or get_settings()).log_level).upper()
    if _active == (profile, resolved_level):
        return

    logger.remove()
    logger.configure(patcher=_tag_scope)
    if profile == "chat":
        logger.add(_chat_sink(), level=resolved_level, format="[{extra[scope]}] {message}", backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=resolved_level, format=DEFAULT_FORMAT, backtrace=False, diagnose=False)
    _active = (profile, resolved_level)
