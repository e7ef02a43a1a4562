"""Loguru-based logging for firemock.

Every module logs through ``get_logger(__name__)``. The first call installs
firemock's own sink and drops loguru's stock DEBUG handler, so a test run
only sees warnings unless ``FIREMOCK_LOG_LEVEL`` or ``configure_logging``
asks for more.

>>> from firemock.kernel.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.warning("Unsupported operator {op!r}", op=">")

Switching sinks at runtime::

    from firemock.kernel.logging import configure_logging
    configure_logging(level="DEBUG", format="rich")
"""

import inspect
import logging
import os
import sys
from contextlib import suppress
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger
from rich.logging import RichHandler

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json", "structured", "rich"]

# Id of the handler loguru installs on import
_LOGURU_DEFAULT_HANDLER = 0

_CURRENT_CONFIG: dict | None = None
_HANDLER_IDS: list[int] = []
_BRIDGE: "_InterceptHandler | None" = None
_BRIDGE_PREVIOUS_LEVEL = logging.WARNING


def configure_logging(
    level: LogLevel = "WARNING",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    use_color: bool = True,
    include_timestamp: bool = True,
    force_reconfigure: bool = False,
    use_rich: bool = False,
    enable_stdlib_bridge: bool = False,
) -> None:
    """Install firemock's log sinks.

    Calling again with the same arguments is a no-op. Reconfiguring only
    touches sinks firemock added, so sinks registered by tests or the host
    application keep receiving records.

    Parameters
    ----------
    level : LogLevel, default="WARNING"
        Minimum level for firemock's sinks
    format : LogFormat, default="structured"
        "console" (plain), "json" (serialized records), "structured"
        (colored loguru format) or "rich" (``RichHandler``)
    output_file : str | Path | None, default=None
        Extra JSON sink written to this path
    use_color : bool, default=True
        Colorize the structured format when stderr is a TTY
    include_timestamp : bool, default=True
        Prefix records with a timestamp
    force_reconfigure : bool, default=False
        Rebuild sinks even if the arguments did not change
    use_rich : bool, default=False
        Shortcut for ``format="rich"``
    enable_stdlib_bridge : bool, default=False
        Forward records from the stdlib ``logging`` module into loguru
    """
    global _CURRENT_CONFIG

    current_config = {
        "level": level,
        "format": format,
        "output_file": str(output_file) if output_file else None,
        "use_color": use_color,
        "include_timestamp": include_timestamp,
        "use_rich": use_rich,
        "enable_stdlib_bridge": enable_stdlib_bridge,
    }

    if not force_reconfigure and current_config == _CURRENT_CONFIG:
        return

    if _CURRENT_CONFIG is None:
        # loguru's stock stderr handler logs everything at DEBUG
        with suppress(ValueError):
            logger.remove(_LOGURU_DEFAULT_HANDLER)

    for handler_id in _HANDLER_IDS:
        with suppress(ValueError):
            logger.remove(handler_id)
    _HANDLER_IDS.clear()

    _HANDLER_IDS.append(
        logger.add(level=level, **_console_sink(format, use_rich, use_color, include_timestamp))
    )

    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _HANDLER_IDS.append(logger.add(sink=output_path, level=level, serialize=True))

    if enable_stdlib_bridge:
        enable_stdlib_logging_bridge()
    else:
        disable_stdlib_logging_bridge()

    _CURRENT_CONFIG = current_config


def _console_sink(
    format: LogFormat, use_rich: bool, use_color: bool, include_timestamp: bool
) -> dict[str, Any]:
    """Keyword arguments for ``logger.add`` describing the stderr sink."""
    if use_rich or format == "rich":
        handler = RichHandler(rich_tracebacks=True, markup=True, show_time=include_timestamp)
        return {"sink": handler, "format": "{message}"}

    if format == "json":
        return {"sink": sys.stderr, "serialize": True}

    timestamp = "{time:YYYY-MM-DD HH:mm:ss} " if include_timestamp else ""
    if format == "structured":
        colorize = use_color and sys.stderr.isatty()
        if colorize:
            timestamp = f"<green>{timestamp}</green>" if timestamp else ""
        return {
            "sink": sys.stderr,
            "format": (
                f"{timestamp}[<level>{{level: <8}}</level>]"
                "<cyan>{extra[module]}:{function}:{line}</cyan> | <level>{message}</level>"
            ),
            "colorize": colorize,
            "filter": _ensure_module_extra,
        }

    return {
        "sink": sys.stderr,
        "format": f"{timestamp}{{level: <8}} | {{name}} | {{message}}",
        "colorize": False,
    }


def _ensure_module_extra(record: dict) -> bool:
    record["extra"].setdefault("module", record["name"])
    return True


@lru_cache(maxsize=256)
def get_logger(name: str) -> "Logger":
    """Return a loguru logger bound with ``module=name``.

    Configures logging from ``FIREMOCK_LOG_LEVEL`` / ``FIREMOCK_LOG_FORMAT``
    on first use.
    """
    _ensure_configured()
    return logger.bind(module=name)


class _InterceptHandler(logging.Handler):
    """stdlib handler that re-emits records through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Report the frame that called the stdlib logger, not logging internals
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(module=record.name).log(
            level, record.getMessage()
        )


def enable_stdlib_logging_bridge() -> None:
    """Route the stdlib root logger into loguru. Idempotent."""
    global _BRIDGE, _BRIDGE_PREVIOUS_LEVEL
    if _BRIDGE is not None:
        return
    root = logging.getLogger()
    _BRIDGE_PREVIOUS_LEVEL = root.level
    _BRIDGE = _InterceptHandler()
    root.addHandler(_BRIDGE)
    root.setLevel(logging.NOTSET)


def disable_stdlib_logging_bridge() -> None:
    """Undo ``enable_stdlib_logging_bridge``."""
    global _BRIDGE
    if _BRIDGE is None:
        return
    root = logging.getLogger()
    root.removeHandler(_BRIDGE)
    root.setLevel(_BRIDGE_PREVIOUS_LEVEL)
    _BRIDGE = None


def _ensure_configured() -> None:
    if _CURRENT_CONFIG is None:
        level = os.getenv("FIREMOCK_LOG_LEVEL", "WARNING").upper()
        format_type = os.getenv("FIREMOCK_LOG_FORMAT", "structured").lower()
        configure_logging(level=level, format=format_type)  # type: ignore[arg-type]
