"""Loading of the ``.amc.toml`` configuration file."""

import logging
import pathlib
import tomllib
from dataclasses import dataclass, field
from typing import Any

from allmycircuits.constants import DEFAULT_CONFIG_FILE, DEFAULT_DELIMITER
from allmycircuits.errors import ConfigError
from allmycircuits.file_operations import normalize_extensions

logger = logging.getLogger(__name__)

KNOWN_KEYS = frozenset({"delimiter", "extensions", "excluded_folders"})


@dataclass(frozen=True)
class Config:
    """Settings for one bundling run.

    Attributes:
        delimiter: Line written above and below every file header
        extensions: Extensions to include; empty means every file
        excluded_folders: Directory names skipped at any depth
    """

    delimiter: str = DEFAULT_DELIMITER
    extensions: frozenset[str] = frozenset()
    excluded_folders: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Config":
        """Build a Config from parsed TOML, validating value types."""
        for key in sorted(set(data) - KNOWN_KEYS):
            logger.warning("Ignoring unknown configuration key %r", key)

        delimiter = data.get("delimiter", DEFAULT_DELIMITER)
        if not isinstance(delimiter, str):
            raise ConfigError(f"'delimiter' must be a string, got {type(delimiter).__name__}")
        if not delimiter or "\n" in delimiter:
            raise ConfigError("'delimiter' must be a non-empty single line")

        return cls(
            delimiter=delimiter,
            extensions=normalize_extensions(_string_list(data, "extensions")),
            excluded_folders=tuple(_string_list(data, "excluded_folders")),
        )


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return value


def parse_config(content: str) -> Config:
    """Parse configuration from a TOML string.

    Raises:
        ConfigError: If the TOML is invalid or a value has the wrong type
    """
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config: {e}") from e
    return Config.from_mapping(data)


def load_config(path: str | pathlib.Path | None = None) -> Config:
    """Load the configuration for a run.

    Args:
        path: Config file given by the user, or None for the default
            ``.amc.toml`` in the working directory

    Returns:
        The parsed Config. A missing default file yields the built-in
        defaults; a missing file that was asked for explicitly is an error.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    explicit = path is not None
    config_path = pathlib.Path(path if explicit else DEFAULT_CONFIG_FILE)

    if not config_path.exists() and not explicit:
        logger.debug("No %s found, using default configuration", config_path)
        return Config()

    try:
        content = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read config file: {config_path}: {e}") from e

    config = parse_config(content)
    logger.info("Loaded configuration from %s", config_path)
    return config
