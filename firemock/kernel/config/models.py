"""Configuration data models for firemock."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from firemock.kernel.exceptions import ValidationError

FlushDelay = bool | float


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for firemock.

    Attributes
    ----------
    level : str, default="WARNING"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    use_rich : bool, default=False
        Use Rich for console output
    stdlib_bridge : bool, default=False
        Forward stdlib ``logging`` records (third-party libraries) into loguru

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.firemock.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export FIREMOCK_LOG_LEVEL=DEBUG
    export FIREMOCK_LOG_FORMAT=json
    export FIREMOCK_LOG_STDLIB_BRIDGE=true
    ```
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True
    use_rich: bool = False
    stdlib_bridge: bool = False


@dataclass(frozen=True, slots=True)
class FiremockConfig:
    """Top-level firemock configuration.

    Attributes
    ----------
    auto_flush : bool | float, default=False
        Initial auto-flush setting for roots built by ``mock_firestore``.
        ``False`` keeps deferred operations pending until flushed, ``True``
        flushes synchronously, a number flushes after that many seconds.
    root_path : str, default="Mock://"
        Path of the root reference.
    logging : LoggingConfig
        Logging configuration.
    """

    auto_flush: FlushDelay = False
    root_path: str = "Mock://"
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate auto_flush delay."""
        if not isinstance(self.auto_flush, bool) and self.auto_flush < 0:
            raise ValidationError("auto_flush", "delay must not be negative", self.auto_flush)
        if not self.root_path:
            raise ValidationError("root_path", "must not be empty")
