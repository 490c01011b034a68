"""
Parse Claude Code conversation logs (``~/.claude``) into usage records.

Conversation logs are JSON Lines files. Lines carrying a ``message.usage``
object are assistant turns with token counts; every other line is ignored.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from dateutil.parser import isoparse

from src.core.config import settings
from src.core.exceptions import NoUsableFiles, NoUsageData, SelectionCancelled
from src.schemas.usage import UsageData
from src.services.aggregator import RawUsageRecord, aggregate_usage, token_count


logger = logging.getLogger(__name__)

JSONL_SUFFIX = ".jsonl"
SKIPPED_DIRS = frozenset({".git", "node_modules", "statsig"})
PROGRESS_EVERY = 10

ProgressCallback = Callable[[str], None]
UploadedFile = Tuple[str, bytes]


def find_jsonl_files(
    root: Path, max_depth: Optional[int] = None, _depth: int = 0
) -> List[Path]:
    """Recursively collect ``*.jsonl`` files below ``root``.

    Descent stops past ``max_depth`` levels; unreadable sub-directories are
    logged and skipped.
    """

    limit = settings.LOCAL_SCAN_MAX_DEPTH if max_depth is None else max_depth
    if _depth > limit:
        return []

    found: List[Path] = []
    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        logger.warning("Could not read directory %s: %s", root, exc)
        return found

    for entry in entries:
        if entry.is_dir():
            if entry.name in SKIPPED_DIRS:
                continue
            found.extend(find_jsonl_files(entry, limit, _depth + 1))
        elif entry.is_file() and entry.name.endswith(JSONL_SUFFIX):
            found.append(entry)
    return found


def is_candidate_upload(relative_path: str, max_depth: Optional[int] = None) -> bool:
    """Apply the directory-scan rules to a path relative to the selected folder."""

    limit = settings.LOCAL_SCAN_MAX_DEPTH if max_depth is None else max_depth
    parts = PurePosixPath(relative_path.replace("\\", "/")).parts
    if not parts or not parts[-1].endswith(JSONL_SUFFIX):
        return False
    directories = parts[:-1]
    if any(part in SKIPPED_DIRS for part in directories):
        return False
    return len(directories) <= limit


def _parse_timestamp(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return isoparse(value)
    except (ValueError, OverflowError):
        return None


def parse_usage_line(line: str) -> Optional[RawUsageRecord]:
    """Return a record for a usage-bearing line, ``None`` for anything else."""

    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    message = data.get("message")
    if not isinstance(message, dict):
        return None
    usage = message.get("usage")
    if not isinstance(usage, dict):
        return None

    timestamp = _parse_timestamp(data.get("timestamp"))
    if timestamp is None:
        # Lines without a timestamp are attributed to the moment of parsing
        timestamp = datetime.now(timezone.utc)

    try:
        return RawUsageRecord(
            model=message.get("model") or "unknown",
            input_tokens=token_count(usage.get("input_tokens")),
            output_tokens=token_count(usage.get("output_tokens")),
            cache_creation_tokens=token_count(usage.get("cache_creation_input_tokens")),
            cache_read_tokens=token_count(usage.get("cache_read_input_tokens")),
            timestamp=timestamp,
        )
    except (TypeError, ValueError):
        return None


def parse_jsonl_text(content: str) -> List[RawUsageRecord]:
    records: List[RawUsageRecord] = []
    for line in content.splitlines():
        if not line.strip():
            continue
        record = parse_usage_line(line)
        if record is not None:
            records.append(record)
    return records


def _collect_records(
    named_contents: Iterable[Tuple[str, Optional[str]]],
    file_count: int,
    on_progress: Optional[ProgressCallback],
) -> Iterator[RawUsageRecord]:
    for processed, (name, content) in enumerate(named_contents, start=1):
        if content is not None:
            yield from parse_jsonl_text(content)
        if on_progress and processed % PROGRESS_EVERY == 0:
            on_progress(f"Parsed {processed}/{file_count} files...")


def _finish(
    records: Iterable[RawUsageRecord],
    year: int,
    on_progress: Optional[ProgressCallback],
) -> UsageData:
    usage = aggregate_usage(records, year, "local-files")
    if on_progress:
        on_progress("Aggregation complete.")
    if usage.is_empty:
        raise NoUsageData(
            f"No token usage found for {year}. "
            f"Make sure you have Claude conversation data from {year}."
        )
    return usage


def _read_file(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not parse file %s: %s", path, exc)
        return None


def parse_local_directory(
    root: Path,
    year: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> UsageData:
    """Scan a Claude data directory on this machine and aggregate its usage."""

    year = year or settings.USAGE_YEAR
    root = Path(root).expanduser()
    if not root.is_dir():
        raise SelectionCancelled(f"Could not open the selected directory: {root}")

    if on_progress:
        on_progress("Scanning for conversation files...")
    files = find_jsonl_files(root)
    if not files:
        raise NoUsableFiles()
    if on_progress:
        on_progress(f"Found {len(files)} conversation files. Parsing...")

    logger.info("Parsing %d conversation files under %s", len(files), root)
    records = _collect_records(
        ((str(path), _read_file(path)) for path in files), len(files), on_progress
    )
    return _finish(records, year, on_progress)


def parse_uploaded_files(
    files: Sequence[UploadedFile],
    year: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> UsageData:
    """Aggregate usage from files uploaded out of a user-selected directory.

    ``files`` holds ``(relative_path, content)`` pairs; paths are relative to
    the selected directory.
    """

    year = year or settings.USAGE_YEAR
    if not files:
        raise SelectionCancelled()

    candidates = [(name, data) for name, data in files if is_candidate_upload(name)]
    if not candidates:
        raise NoUsableFiles()
    if on_progress:
        on_progress(f"Found {len(candidates)} conversation files. Parsing...")

    logger.info("Parsing %d uploaded conversation files", len(candidates))
    records = _collect_records(
        ((name, data.decode("utf-8", "replace")) for name, data in candidates),
        len(candidates),
        on_progress,
    )
    return _finish(records, year, on_progress)
