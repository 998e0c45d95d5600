"""Shared constants for all-my-circuits."""

DEFAULT_CONFIG_FILE = ".amc.toml"
DEFAULT_DELIMITER = "---"

# Patterns that apply regardless of any ignore file
ALWAYS_IGNORE_PATTERNS: list[str] = [
    ".git",
]

# File names never bundled, wherever they appear in the tree
EXCLUDED_FILES: frozenset[str] = frozenset({DEFAULT_CONFIG_FILE})

# Per-directory ignore files, lowest precedence first
IGNORE_FILE_NAMES: tuple[str, ...] = (".gitignore", ".ignore")

NO_METADATA = "none"
