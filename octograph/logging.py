"""femtologging plumbing for the ingest and repair commands.

femtologging only accepts finished strings, so every helper here renders its
``%``-style template eagerly. A template that does not match its arguments is
rendered with the arguments appended instead of raising: a typo in a progress
line must never abort an upload attempt.

Example:
>>> from octograph.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Decoded %d shards", 120)

"""

from __future__ import annotations

import typing as typ

from femtologging import basicConfig, get_logger

DEFAULT_LEVEL = "INFO"

# femtologging spells the warning level both ways.
KNOWN_LEVELS: typ.Final[frozenset[str]] = frozenset(
    {"TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL"}
)


class LogSink(typ.Protocol):
    """Anything with femtologging's ``log`` signature, loggers or test fakes."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Map ``OCTOGRAPH_LOG_LEVEL`` onto a femtologging level.

    Returns the level to apply and whether ``level`` was rejected. Blank or
    unknown names fall back to ``INFO``; the CLI warns about them after the
    handler is installed.
    """
    candidate = (level or "").strip().upper()
    if candidate in KNOWN_LEVELS:
        return (candidate, False)
    return (DEFAULT_LEVEL, True)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the root femtologging handler at ``level``.

    Parameters
    ----------
    level : str | None
        Raw level name, usually ``OctographConfig.log_level``.
    force : bool, optional
        Replace a handler installed by an earlier call.

    Returns
    -------
    tuple[str, bool]
        The level applied and whether the requested one was rejected.

    """
    applied, rejected = normalize_log_level(level)
    basicConfig(level=applied, force=force)
    return (applied, rejected)


def format_log_message(template: str, *args: object) -> str:
    """Render ``template % args``; a mismatched template keeps its arguments."""
    if not args:
        return template
    try:
        return template % args
    except (TypeError, ValueError):
        rendered = " ".join(repr(arg) for arg in args)
        return f"{template} {rendered}"


def log_at(
    logger: LogSink,
    level: str,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Render ``template`` and hand it to ``logger`` at ``level``."""
    logger.log(
        level,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: LogSink, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit a DEBUG record."""
    log_at(logger, "DEBUG", template, *args, exc_info=exc_info)


def log_info(
    logger: LogSink, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit an INFO record."""
    log_at(logger, "INFO", template, *args, exc_info=exc_info)


def log_warning(
    logger: LogSink, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit a WARNING record, used for shard and mutation failures."""
    log_at(logger, "WARNING", template, *args, exc_info=exc_info)


def log_error(
    logger: LogSink, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit an ERROR record, used for attempts that die unexpectedly."""
    log_at(logger, "ERROR", template, *args, exc_info=exc_info)


def log_exception(logger: LogSink, message: str, exc: BaseException) -> None:
    """Emit ``message`` at ERROR with ``exc`` attached."""
    log_at(logger, "ERROR", message, exc_info=exc)


__all__ = [
    "DEFAULT_LEVEL",
    "KNOWN_LEVELS",
    "LogSink",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_at",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
