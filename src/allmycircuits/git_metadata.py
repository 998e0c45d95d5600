"""Last-commit lookup for files inside a Git repository.

The resolver discovers the repository enclosing the scan root, then answers
"which commit last touched this path?" for every bundled file. The history is
walked once per run: a single ``git log`` lists, for every commit reachable
from HEAD (newest first), the paths whose content differs from the commit's
first parent. The first commit seen for a path is the one that last modified
it, which is what ``git log -1 -- <path>`` reports.

Git metadata is best effort. Outside a repository, in a repository without
commits, or when ``git`` fails, lookups return None and the bundle is still
produced.
"""

import logging
import os
import pathlib
import re
import shutil
import subprocess

from allmycircuits.file_operations import find_project_root
from allmycircuits.models import CommitMetadata

logger = logging.getLogger(__name__)

RECORD_MARK = "\x1e"
_HEADER_END = re.compile(r"[\n\0]")


class GitCommandError(Exception):
    """A git invocation failed. Never escapes the resolver."""


def parse_history(output: str) -> dict[str, CommitMetadata]:
    """Map each path to the newest commit that touched it.

    Args:
        output: Output of ``git log --format=<RECORD_MARK>%H %ct --name-only -z``

    Returns:
        Dict of repository-relative POSIX paths to CommitMetadata
    """
    index: dict[str, CommitMetadata] = {}
    for record in output.split(RECORD_MARK):
        if not record.strip("\n\0"):
            continue
        parts = _HEADER_END.split(record, maxsplit=1)
        header = parts[0].split()
        if len(header) != 2 or not header[1].isdigit():
            logger.debug("Unexpected git log record header %r", parts[0])
            continue
        metadata = CommitMetadata(commit_hash=header[0], commit_time=int(header[1]))

        names = parts[1].split("\0") if len(parts) > 1 else []
        if names:
            names[0] = names[0].lstrip("\n")
        for name in names:
            if name and name.strip("\n"):
                index.setdefault(name, metadata)
    return index


class GitMetadataResolver:
    """Resolves CommitMetadata for files of the repository around start_dir.

    Use as a context manager so the repository is opened once per run::

        with GitMetadataResolver(scan_root) as resolver:
            metadata = resolver.lookup(path)

    Args:
        start_dir: Directory where repository discovery starts
        git_executable: Name or path of the git binary
        timeout: Seconds allowed for each git invocation
    """

    def __init__(
        self,
        start_dir: pathlib.Path,
        *,
        git_executable: str = "git",
        timeout: float | None = 300,
    ) -> None:
        self.start_dir = pathlib.Path(start_dir)
        self.git_executable = git_executable
        self.timeout = timeout
        self.repo_root: pathlib.Path | None = None
        self._active = False
        self._index: dict[str, CommitMetadata] | None = None
        self._tracked: frozenset[str] | None = None

    def __enter__(self) -> "GitMetadataResolver":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def active(self) -> bool:
        """True while lookups can return metadata."""
        return self._active

    def open(self) -> "GitMetadataResolver":
        """Discover the repository and check that HEAD resolves."""
        self.repo_root = find_project_root(self.start_dir)
        if self.repo_root is None:
            logger.debug("%s is not inside a git repository", self.start_dir)
            return self

        if shutil.which(self.git_executable) is None:
            logger.warning(
                "git executable %r not found; commit metadata is unavailable", self.git_executable
            )
            return self

        try:
            self._run("rev-parse", "--verify", "--quiet", "HEAD")
        except GitCommandError:
            logger.debug("Repository %s has no commits yet", self.repo_root)
            return self

        logger.info("Using git repository at %s", self.repo_root)
        self._active = True
        return self

    def close(self) -> None:
        self._active = False
        self._index = None
        self._tracked = None

    def _run(self, *args: str) -> str:
        cmd = [
            self.git_executable,
            "-C",
            str(self.repo_root),
            "-c",
            "log.showSignature=false",
            *args,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, check=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            message = e.stderr.decode("utf-8", errors="replace").strip()
            raise GitCommandError(f"git {args[0]} failed: {message or e}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise GitCommandError(f"git {args[0]} failed: {e}") from e
        return os.fsdecode(result.stdout)

    def _load(self) -> None:
        tracked = self._run("ls-tree", "-r", "-z", "--name-only", "HEAD")
        history = self._run(
            "log",
            f"--format={RECORD_MARK}%H %ct",
            "--name-only",
            "-z",
            "--no-renames",
            "--diff-merges=first-parent",
            "HEAD",
        )
        self._tracked = frozenset(name for name in tracked.split("\0") if name)
        self._index = parse_history(history)
        logger.debug(
            "Indexed %d paths from the history of %s", len(self._index), self.repo_root
        )

    def _repo_relative(self, path: pathlib.Path) -> str | None:
        path = pathlib.Path(path)
        if not path.is_absolute():
            return path.as_posix()
        try:
            return path.relative_to(self.repo_root).as_posix()
        except ValueError:
            try:
                return path.resolve().relative_to(self.repo_root).as_posix()
            except (OSError, ValueError):
                return None

    def lookup(self, path: pathlib.Path) -> CommitMetadata | None:
        """Return the last commit that touched path, or None if it has no history.

        Args:
            path: Absolute path, or a path relative to the repository root

        Returns:
            CommitMetadata, or None for untracked files, files outside the
            repository, or when git metadata is unavailable
        """
        if not self._active:
            return None

        relative = self._repo_relative(path)
        if relative is None:
            return None

        if self._index is None:
            try:
                self._load()
            except GitCommandError as e:
                logger.warning("Could not read git history, commit metadata disabled: %s", e)
                self.close()
                return None

        if relative not in self._tracked:
            return None
        return self._index.get(relative)
