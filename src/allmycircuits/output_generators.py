"""Bundle output: one annotated section per file, streamed to a sink."""

import contextlib
import logging
import pathlib
import sys
from collections.abc import Iterable
from typing import BinaryIO

from tqdm import tqdm

from allmycircuits.config import Config
from allmycircuits.constants import NO_METADATA
from allmycircuits.errors import OutputError, ScanRootError
from allmycircuits.file_operations import (
    find_global_gitignore,
    iter_candidate_files,
)
from allmycircuits.git_metadata import GitMetadataResolver
from allmycircuits.models import BundleSummary, CandidateFile, CommitMetadata

logger = logging.getLogger(__name__)


def render_header(delimiter: str, file_path: str, metadata: CommitMetadata | None) -> bytes:
    """Render the header block that precedes a file's content.

    Args:
        delimiter: Line written above and below the header
        file_path: Relative path with forward slashes
        metadata: Last commit of the file, or None if it has no history

    Returns:
        UTF-8 encoded header, ending with a newline

    Examples:
        >>> render_header("---", "a.rs", None).decode()
        '---\\nFile: a.rs\\nLast commit: none\\nLast update: none\\n---\\n'
    """
    if metadata is None:
        commit_hash = commit_time = NO_METADATA
    else:
        commit_hash, commit_time = metadata.commit_hash, str(metadata.commit_time)

    lines = [
        delimiter,
        f"File: {file_path}",
        f"Last commit: {commit_hash}",
        f"Last update: {commit_time}",
        delimiter,
    ]
    return ("\n".join(lines) + "\n").encode("utf-8", errors="surrogateescape")


def _write(sink: BinaryIO, data: bytes) -> None:
    try:
        sink.write(data)
    except OSError as e:
        raise OutputError(f"Could not write output: {e}") from e


def write_sections(
    files: Iterable[CandidateFile],
    resolver: GitMetadataResolver,
    delimiter: str,
    sink: BinaryIO,
) -> BundleSummary:
    """Write one section per file, in the order the files are given.

    A file whose content cannot be read is logged and left out; the
    remaining files are still written.

    Raises:
        OutputError: If the sink cannot be written
    """
    summary = BundleSummary()

    for candidate in files:
        metadata = resolver.lookup(candidate.path)

        try:
            content = candidate.path.read_bytes()
        except OSError as e:
            logger.warning("Skipping %s: %s", candidate.display_path, e.strerror or e)
            summary.skipped += 1
            summary.skipped_paths.append(candidate.display_path)
            continue

        if metadata is None:
            summary.without_history += 1
            logger.debug("No commit history for %s", candidate.display_path)

        _write(sink, render_header(delimiter, candidate.display_path, metadata))
        _write(sink, content)
        _write(sink, b"\n\n")
        try:
            sink.flush()
        except OSError as e:
            raise OutputError(f"Could not write output: {e}") from e
        summary.written += 1

    return summary


@contextlib.contextmanager
def open_sink(output_file: str | pathlib.Path | None):
    """Yield a binary stream for the bundle: stdout for None or "-", else a file."""
    if output_file is None or str(output_file) == "-":
        yield sys.stdout.buffer
        return

    output_path = pathlib.Path(output_file)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        sink = open(output_path, "wb")
    except OSError as e:
        raise OutputError(f"Could not write to {output_path}: {e}") from e
    with sink:
        yield sink


def create_bundle(
    target_dir: str | pathlib.Path,
    output_file: str | pathlib.Path | None,
    config: Config,
    *,
    config_path: str | pathlib.Path | None = None,
    show_progress: bool = False,
) -> BundleSummary:
    """Bundle every matching file under target_dir.

    Args:
        target_dir: Directory to scan for files
        output_file: Path of the bundle, or None / "-" for stdout
        config: Delimiter, extension filter and excluded folders
        config_path: Config file of this run, kept out of the bundle
        show_progress: Show a progress bar on stderr

    Returns:
        BundleSummary with the number of written and skipped files

    Raises:
        ScanRootError: If target_dir is not a directory
        OutputError: If the bundle cannot be written
    """
    start_path = pathlib.Path(target_dir)
    if not start_path.is_dir():
        raise ScanRootError(f"Directory not found: {target_dir}")
    start_path = start_path.resolve()

    excluded_paths = [pathlib.Path(p) for p in (output_file, config_path) if p and str(p) != "-"]

    logger.info("Scanning directory: %s", start_path)
    if config.extensions:
        logger.info("Looking for extensions: %s", ", ".join(sorted(config.extensions)))

    with open_sink(output_file) as sink, GitMetadataResolver(start_path) as resolver:
        files = iter_candidate_files(
            start_path,
            config.extensions,
            project_root=resolver.repo_root,
            excluded_paths=excluded_paths,
            excluded_folders=config.excluded_folders,
            global_ignore=find_global_gitignore(resolver.repo_root),
        )
        files = tqdm(files, desc="Bundling", unit="file", disable=not show_progress)
        summary = write_sections(files, resolver, config.delimiter, sink)

    logger.info(
        "Wrote %d files (%d skipped, %d without commit history)",
        summary.written,
        summary.skipped,
        summary.without_history,
    )
    return summary
