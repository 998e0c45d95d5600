"""Exceptions raised by all-my-circuits.

Every exception derived from :class:`AmcError` is fatal for a run: the CLI
logs it and exits with a non-zero status. Per-file problems are never raised,
they are logged and the file is skipped.
"""


class AmcError(Exception):
    """Base class for fatal errors."""


class ConfigError(AmcError):
    """The configuration file is missing, unreadable or malformed."""


class ScanRootError(AmcError):
    """The directory to scan does not exist or is not a directory."""


class OutputError(AmcError):
    """The bundle could not be written to its destination."""


class CleanError(AmcError):
    """The file given to ``amc clean`` could not be processed."""
