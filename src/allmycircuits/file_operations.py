"""Directory traversal with ignore-file and extension filtering."""

import logging
import os
import pathlib
import stat
import subprocess
from collections.abc import Iterable, Iterator

import pathspec

from allmycircuits.constants import ALWAYS_IGNORE_PATTERNS, EXCLUDED_FILES, IGNORE_FILE_NAMES
from allmycircuits.models import CandidateFile

logger = logging.getLogger(__name__)


class IgnoreLayer:
    """Ignore patterns anchored at one directory.

    Args:
        base: Directory the patterns are relative to
        lines: Raw pattern lines, in file order
        source: Where the patterns came from, for debug output
    """

    def __init__(self, base: pathlib.Path, lines: Iterable[str], source: str = "") -> None:
        self.base = base
        self.source = source
        self.spec = pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, lines)

    def __bool__(self) -> bool:
        return bool(self.spec.patterns)

    def verdict(self, path: pathlib.Path, is_dir: bool) -> bool | None:
        """Return True if ignored, False if re-included, None if no pattern matches.

        The last matching pattern decides, as in git.
        """
        try:
            relative = path.relative_to(self.base).as_posix()
        except ValueError:
            return None
        if is_dir:
            relative += "/"

        result = None
        for pattern in self.spec.patterns:
            if pattern.include is None:
                continue
            if pattern.match_file(relative) is not None:
                result = pattern.include
        return result


def is_ignored(path: pathlib.Path, is_dir: bool, layers: list[IgnoreLayer]) -> bool:
    """Evaluate layers from lowest to highest precedence; the last verdict wins."""
    ignored = False
    for layer in layers:
        verdict = layer.verdict(path, is_dir)
        if verdict is not None:
            ignored = verdict
    return ignored


def find_project_root(start_dir: pathlib.Path) -> pathlib.Path | None:
    """Find the nearest directory at or above start_dir containing .git.

    Args:
        start_dir: Starting directory for search

    Returns:
        Path to the repository root, or None when start_dir is not inside one
    """
    current = start_dir.resolve()
    while True:
        if (current / ".git").exists():
            return current
        parent = current.parent
        if parent == current:
            logger.debug("No .git found above %s", start_dir)
            return None
        current = parent


def find_global_gitignore(project_root: pathlib.Path | None = None) -> pathlib.Path | None:
    """Locate the excludes file git would use for project_root.

    Uses ``core.excludesFile`` from the system, global or repository config
    when git is available and it is set, then falls back to
    ``$XDG_CONFIG_HOME/git/ignore`` (``~/.config/git/ignore``).

    Args:
        project_root: Repository whose local config is also read, if any

    Returns:
        Path of an existing excludes file, or None
    """
    cmd = ["git", "config", "--path", "--get", "core.excludesFile"]
    if project_root is not None:
        cmd[1:1] = ["-C", str(project_root)]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=5,
        )
        configured = result.stdout.strip()
    except (OSError, subprocess.TimeoutExpired):
        configured = ""

    if configured:
        candidate = pathlib.Path(configured).expanduser()
        if project_root is not None and not candidate.is_absolute():
            candidate = project_root / candidate
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME") or str(pathlib.Path.home() / ".config")
        candidate = pathlib.Path(xdg) / "git" / "ignore"
    return candidate if candidate.is_file() else None


def load_ignore_patterns(ignore_path: pathlib.Path) -> list[str]:
    """Read pattern lines from an ignore file.

    Args:
        ignore_path: Path to a .gitignore-style file

    Returns:
        List of pattern lines, or an empty list if the file is missing or unreadable
    """
    try:
        if not ignore_path.is_file():
            return []
        with open(ignore_path, encoding="utf-8", errors="ignore") as f:
            return f.read().splitlines()
    except OSError as e:
        logger.warning("Could not read %s: %s", ignore_path, e)
        return []


def directory_layers(directory: pathlib.Path) -> list[IgnoreLayer]:
    """Layers contributed by the ignore files inside one directory."""
    layers = []
    for name in IGNORE_FILE_NAMES:
        layer = IgnoreLayer(directory, load_ignore_patterns(directory / name), str(directory / name))
        if layer:
            layers.append(layer)
    return layers


def base_layers(
    start_path: pathlib.Path,
    project_root: pathlib.Path | None,
    global_ignore: pathlib.Path | None = None,
) -> list[IgnoreLayer]:
    """Build the ignore layers in effect at start_path itself.

    Order, lowest precedence first: always-ignored patterns, the global
    excludes file, ``.git/info/exclude``, then the ignore files of every
    directory from the project root down to (and including) start_path.
    """
    anchor = project_root or start_path
    layers = [IgnoreLayer(anchor, ALWAYS_IGNORE_PATTERNS, "builtin")]

    if global_ignore is not None:
        layers.append(IgnoreLayer(anchor, load_ignore_patterns(global_ignore), str(global_ignore)))
    if project_root is not None:
        exclude_path = project_root / ".git" / "info" / "exclude"
        layers.append(IgnoreLayer(anchor, load_ignore_patterns(exclude_path), str(exclude_path)))

    chain = [start_path]
    if project_root is not None and project_root != start_path:
        chain = [start_path, *start_path.parents]
        chain = list(reversed(chain[: chain.index(project_root) + 1]))
    for directory in chain:
        layers.extend(directory_layers(directory))

    return [layer for layer in layers if layer]


def normalize_extensions(values: Iterable[str]) -> frozenset[str]:
    """Lowercase extensions and strip a leading dot (``".RS"`` -> ``"rs"``)."""
    cleaned = (v.strip().lstrip(".").lower() for v in values)
    return frozenset(v for v in cleaned if v)


def matches_extension(file_path: pathlib.Path, extensions: frozenset[str]) -> bool:
    """Check a file against the extension filter.

    Args:
        file_path: Path to the file
        extensions: Lowercase extensions without dots; empty matches everything

    Examples:
        >>> matches_extension(Path("src/Main.RS"), frozenset({"rs"}))
        True
        >>> matches_extension(Path("Makefile"), frozenset({"rs"}))
        False
    """
    if not extensions:
        return True
    return file_path.suffix[1:].lower() in extensions


def iter_candidate_files(
    start_path: pathlib.Path,
    extensions: frozenset[str] = frozenset(),
    *,
    project_root: pathlib.Path | None = None,
    excluded_paths: Iterable[pathlib.Path] = (),
    excluded_names: frozenset[str] = EXCLUDED_FILES,
    excluded_folders: Iterable[str] = (),
    global_ignore: pathlib.Path | None = None,
) -> Iterator[CandidateFile]:
    """Lazily yield the files to bundle, in a deterministic order.

    Entries of each directory are visited in sorted order; a directory's
    files come before the contents of its subdirectories. Symbolic links are
    never followed and never yielded. Unreadable directories are logged and
    skipped.

    Args:
        start_path: Directory to scan
        extensions: Extension filter, see matches_extension
        project_root: Repository root whose ignore files also apply
        excluded_paths: Files never yielded (the output file, the config file)
        excluded_names: File names never yielded
        excluded_folders: Directory names skipped at any depth
        global_ignore: The user's global excludes file, if any

    Yields:
        CandidateFile for every file that passes all filters
    """
    start_path = start_path.resolve()
    if project_root is not None:
        project_root = project_root.resolve()
        if not start_path.is_relative_to(project_root):
            project_root = None

    skipped_paths = {pathlib.Path(p).resolve() for p in excluded_paths}
    skipped_folders = set(excluded_folders)

    layers_by_dir = {start_path: base_layers(start_path, project_root, global_ignore)}

    def on_error(error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror or error)

    for root, dirs, files in os.walk(start_path, topdown=True, onerror=on_error, followlinks=False):
        root_path = pathlib.Path(root)
        layers = layers_by_dir.get(root_path)
        if layers is None:
            layers = layers_by_dir[root_path.parent] + directory_layers(root_path)
            layers_by_dir[root_path] = layers

        kept_dirs = []
        for d in sorted(dirs):
            dir_path = root_path / d
            if d in skipped_folders:
                continue
            try:
                if dir_path.is_symlink():
                    continue
            except OSError as e:
                logger.warning("Skipping unreadable directory %s: %s", dir_path, e.strerror or e)
                continue
            if is_ignored(dir_path, True, layers):
                logger.debug("Pruned ignored directory %s", dir_path)
                continue
            kept_dirs.append(d)
        # os.walk descends into whatever is left in dirs, in this order
        dirs[:] = kept_dirs

        for filename in sorted(files):
            file_path = root_path / filename
            if filename in excluded_names or file_path in skipped_paths:
                continue
            # lstat raises even where is_file() would hide the error
            try:
                mode = file_path.lstat().st_mode
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", file_path, e.strerror or e)
                continue
            if not stat.S_ISREG(mode):
                continue
            if is_ignored(file_path, False, layers):
                continue
            if not matches_extension(file_path, extensions):
                continue
            yield CandidateFile(path=file_path, relative_path=file_path.relative_to(start_path))
