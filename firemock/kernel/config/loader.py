"""Configuration loader for firemock.

Supports two config sources:

1. **kind: Config YAML** — loaded via explicit path, ``FIREMOCK_CONFIG_PATH``
   or ``./firemock.yaml``.
2. **pyproject.toml [tool.firemock]** — auto-discovery fallback.

When nothing is found the defaults are used. Environment variables
override file values.
"""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from firemock.kernel.config.models import FiremockConfig, FlushDelay, LoggingConfig
from firemock.kernel.exceptions import ConfigurationError, ValidationError
from firemock.kernel.logging import get_logger

_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = _TRUTHY_VALUES | _FALSY_VALUES
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def _parse_flush_delay(value: Any) -> FlushDelay:
    """Parse an auto-flush setting: a boolean word or a delay in seconds."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return _parse_bool_env(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass
    raise ConfigurationError(
        "auto_flush", f"expected a boolean or a number of seconds, got {value!r}"
    )


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str) -> FiremockConfig:
    """Cached configuration loader."""
    return ConfigLoader()._load_and_parse(Path(path_str))


class ConfigLoader:
    """Loads and processes firemock configuration files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

    def load_config_file(self, path: str | Path | None = None) -> FiremockConfig:
        """Load configuration from YAML or pyproject.toml.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Returns
        -------
        FiremockConfig
            Parsed configuration with environment overrides applied
        """
        config_path = self._find_config_file(path)
        if config_path is None:
            logger.debug("No firemock configuration found, using defaults")
            return self._parse_config({})
        return _load_and_parse_cached(str(config_path.absolute()))

    def _load_and_parse(self, config_path: Path) -> FiremockConfig:
        logger.info("Loading configuration from {path}", path=config_path)

        if config_path.suffix in (".yaml", ".yml"):
            return self._load_yaml_config(config_path)
        return self._load_toml_config(config_path)

    def _load_yaml_config(self, config_path: Path) -> FiremockConfig:
        """Load and parse a ``kind: Config`` YAML file.

        Raises
        ------
        ConfigurationError
            If the YAML file is not a valid ``kind: Config`` manifest
        """
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(
                config_path.name, f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                config_path.name, f"must use 'kind: Config' manifest format, got 'kind: {kind}'"
            )

        spec = data.get("spec", {})
        if not isinstance(spec, dict):
            raise ConfigurationError(config_path.name, "'spec' must be a mapping")

        return self._parse_config(self._substitute_env_vars(spec))

    def _load_toml_config(self, config_path: Path) -> FiremockConfig:
        with config_path.open("rb") as f:
            data = tomllib.load(f)

        if "tool" in data:
            firemock_data = data.get("tool", {}).get("firemock", {})
        else:
            firemock_data = data

        if not firemock_data:
            logger.debug("No [tool.firemock] section in {path}, using defaults", path=config_path)
        return self._parse_config(self._substitute_env_vars(firemock_data))

    def _find_config_file(self, path: str | Path | None) -> Path | None:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``FIREMOCK_CONFIG_PATH`` env var
        3. ``firemock.yaml`` in CWD
        4. ``pyproject.toml`` in CWD

        Raises
        ------
        FileNotFoundError
            If an explicit path is given and does not exist
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv("FIREMOCK_CONFIG_PATH"):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from FIREMOCK_CONFIG_PATH: {}", config_path)
                return config_path
            logger.warning("FIREMOCK_CONFIG_PATH set but file not found: {}", config_path)

        for candidate in (Path("firemock.yaml"), Path("pyproject.toml")):
            if candidate.exists():
                return candidate
        return None

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ``${VAR}`` and ``${VAR:default}`` placeholders."""
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name, default = match.group(1), match.group(2)
                value = os.environ.get(var_name, default)
                if value is None:
                    logger.debug(
                        "Environment variable ${{{var_name}}} not found, keeping placeholder",
                        var_name=var_name,
                    )
                    return match.group(0)
                return value

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> FiremockConfig:
        auto_flush = _parse_flush_delay(data.get("auto_flush", False))
        if env_flush := os.getenv("FIREMOCK_AUTO_FLUSH"):
            auto_flush = _parse_flush_delay(env_flush)
            logger.debug("Overriding auto_flush from env: {}", auto_flush)

        try:
            return FiremockConfig(
                auto_flush=auto_flush,
                root_path=data.get("root_path", "Mock://"),
                logging=self._parse_logging_config(data.get("logging", {})),
            )
        except ValidationError as e:
            raise ConfigurationError("firemock", str(e)) from e

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration.

        Environment variables take precedence over config file values:
        - FIREMOCK_LOG_LEVEL: Log level
        - FIREMOCK_LOG_FORMAT: Output format
        - FIREMOCK_LOG_FILE: Optional file path for log output
        - FIREMOCK_LOG_STDLIB_BRIDGE: Forward stdlib logging into loguru (true/false)
        """
        level = logging_data.get("level", "WARNING")
        format_type = logging_data.get("format", "structured")
        output_file = logging_data.get("output_file")
        stdlib_bridge = logging_data.get("stdlib_bridge", False)

        if env_level := os.getenv("FIREMOCK_LOG_LEVEL"):
            level = env_level.upper()
        if env_format := os.getenv("FIREMOCK_LOG_FORMAT"):
            format_type = env_format.lower()
        if env_file := os.getenv("FIREMOCK_LOG_FILE"):
            output_file = env_file
        if env_bridge := os.getenv("FIREMOCK_LOG_STDLIB_BRIDGE"):
            try:
                stdlib_bridge = _parse_bool_env(env_bridge)
            except ValueError as e:
                logger.warning("Invalid FIREMOCK_LOG_STDLIB_BRIDGE value: {}", e)

        return LoggingConfig(
            level=level.upper(),
            format=format_type,
            output_file=output_file,
            use_color=logging_data.get("use_color", True),
            include_timestamp=logging_data.get("include_timestamp", True),
            use_rich=logging_data.get("use_rich", False),
            stdlib_bridge=stdlib_bridge,
        )


@lru_cache(maxsize=1)
def load_config(path: str | None = None) -> FiremockConfig:
    """Load configuration once per process (per explicit path)."""
    return ConfigLoader().load_config_file(path)


def get_default_config() -> FiremockConfig:
    """Return the built-in defaults, ignoring files and environment."""
    return FiremockConfig()


def clear_config_cache() -> None:
    """Clear cached configurations (used by tests)."""
    load_config.cache_clear()
    _load_and_parse_cached.cache_clear()
