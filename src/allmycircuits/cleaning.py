"""The ``amc clean`` command: strip NUL bytes and control characters."""

import logging
import pathlib
import shutil

from allmycircuits.errors import CleanError
from allmycircuits.models import CleanStats

logger = logging.getLogger(__name__)

# Control characters other than tab, line feed and carriage return
CONTROL_BYTES = frozenset(range(1, 9)) | frozenset({11, 12}) | frozenset(range(14, 32))


def clean_content(data: bytes, collect_stats: bool = True) -> tuple[str, CleanStats]:
    """Remove NUL bytes and control characters from data.

    Args:
        data: Raw file content
        collect_stats: Whether to count what was removed

    Returns:
        The cleaned content decoded as UTF-8 (invalid sequences replaced)
        and the collected CleanStats
    """
    stats = CleanStats(total_bytes=len(data))
    cleaned = bytearray()
    line_affected = False

    for byte in data:
        if byte == 0:
            if collect_stats:
                stats.null_bytes += 1
                line_affected = True
        elif byte in CONTROL_BYTES:
            if collect_stats:
                stats.control_chars += 1
                line_affected = True
        else:
            cleaned.append(byte)
            if byte == 0x0A and line_affected:
                stats.lines_affected += 1
                line_affected = False

    if line_affected:
        stats.lines_affected += 1

    return cleaned.decode("utf-8", errors="replace"), stats


def format_clean_report(stats: CleanStats, dry_run: bool) -> str:
    """Render the report printed by ``--report`` and ``--dry-run``."""
    action = "Would remove" if dry_run else "Removed"
    lines = [
        "",
        "=== Clean Report ===",
        f"Total bytes processed: {stats.total_bytes}",
        f"{action} null bytes: {stats.null_bytes}",
        f"{action} control characters: {stats.control_chars}",
        f"Lines affected: {stats.lines_affected}",
    ]
    if stats.removed == 0:
        lines.append("✓ No cleaning needed - file is already clean!")
    else:
        lines.append(f"Total characters {'to remove' if dry_run else 'removed'}: {stats.removed}")
    return "\n".join(lines)


def clean_file(
    input_file: str | pathlib.Path,
    output_file: str | pathlib.Path | None = None,
    *,
    backup: bool = False,
    report: bool = False,
    dry_run: bool = False,
) -> CleanStats:
    """Clean a file in place or into output_file.

    Args:
        input_file: File to clean
        output_file: Destination; defaults to overwriting input_file
        backup: Copy the input to ``<input>.backup`` before overwriting it
        report: Print a report of what was removed
        dry_run: Only report, write nothing

    Returns:
        The CleanStats for the input

    Raises:
        CleanError: If the input is missing or a file cannot be read or written
    """
    input_path = pathlib.Path(input_file)
    if not input_path.is_file():
        raise CleanError(f"Input file does not exist: {input_file}")

    try:
        data = input_path.read_bytes()
    except OSError as e:
        raise CleanError(f"Could not read {input_path}: {e}") from e

    cleaned, stats = clean_content(data, collect_stats=report or dry_run)

    if report or dry_run:
        print(format_clean_report(stats, dry_run))
    if dry_run:
        return stats

    output_path = pathlib.Path(output_file) if output_file is not None else input_path
    try:
        if backup and output_path == input_path:
            backup_path = input_path.with_name(input_path.name + ".backup")
            shutil.copyfile(input_path, backup_path)
            print(f"Created backup: {backup_path}")
        output_path.write_text(cleaned, encoding="utf-8", newline="")
    except OSError as e:
        raise CleanError(f"Could not write {output_path}: {e}") from e

    print(f"Cleaned file written to: {output_path}")
    return stats
