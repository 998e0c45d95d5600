"""Data models for all-my-circuits."""

import pathlib
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CandidateFile:
    """A file selected for the bundle.

    Attributes:
        path: Absolute path to the file (symlinks in the scan root resolved,
            the file itself left as found)
        relative_path: Path relative to the scan root
    """

    path: pathlib.Path
    relative_path: pathlib.Path

    @property
    def display_path(self) -> str:
        """Relative path with forward slashes, identical on every platform."""
        return self.relative_path.as_posix()


@dataclass(frozen=True)
class CommitMetadata:
    """The most recent commit that touched a file.

    Attributes:
        commit_hash: Full 40-character hex object id
        commit_time: Committer timestamp in seconds since the epoch
    """

    commit_hash: str
    commit_time: int


@dataclass
class BundleSummary:
    """Counters collected while writing a bundle."""

    written: int = 0
    skipped: int = 0
    without_history: int = 0
    skipped_paths: list[str] = field(default_factory=list)


@dataclass
class CleanStats:
    """What ``amc clean`` removed from a file.

    Attributes:
        null_bytes: Number of NUL bytes removed
        control_chars: Number of other control characters removed
        total_bytes: Size of the input in bytes
        lines_affected: Number of lines that contained a removed byte
    """

    null_bytes: int = 0
    control_chars: int = 0
    total_bytes: int = 0
    lines_affected: int = 0

    @property
    def removed(self) -> int:
        return self.null_bytes + self.control_chars
