"""
JSONL reading helpers shared by the line-delimited readers.

Invalid lines are skipped and logged at debug level; a missing file reads as
empty. Only whole-file failures are the caller's problem.

File reads run in a worker thread so the index can scan several tools' stores
at once.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from continues.protocols import LoggerProtocol, NullLogger

__all__ = ['file_stats', 'read_jsonl', 'scan_jsonl_head']


async def read_jsonl(file_path: Path, logger: LoggerProtocol | None = None) -> list[Any]:
    """
    Parse every line of a JSONL file.

    Args:
        file_path: JSONL file
        logger: Receives a debug line per skipped record

    Returns:
        Parsed values in file order (empty if the file doesn't exist)
    """
    return await scan_jsonl_head(file_path, None, logger)


async def scan_jsonl_head(
    file_path: Path,
    max_lines: int | None,
    logger: LoggerProtocol | None = None,
) -> list[Any]:
    """
    Parse at most the first ``max_lines`` lines of a JSONL file.

    Metadata scans use this to avoid reading multi-megabyte sessions in full.
    Blank and unparseable lines still count toward the limit.
    """
    logger = logger or NullLogger()
    if not file_path.is_file():
        return []

    records: list[Any] = []
    for line_num, line in await asyncio.to_thread(_read_lines, file_path, max_lines):
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as e:
            await logger.debug(f'Skipping invalid JSON at {file_path.name}:{line_num}: {e}')
    return records


def _read_lines(file_path: Path, max_lines: int | None) -> list[tuple[int, str]]:
    """Non-blank lines with their 1-based numbers, stopping after ``max_lines``."""
    lines: list[tuple[int, str]] = []
    with open(file_path, encoding='utf-8', errors='replace') as f:
        for line_num, line in enumerate(f, 1):
            if max_lines is not None and line_num > max_lines:
                break
            line = line.strip()
            if line:
                lines.append((line_num, line))
    return lines


def file_stats(file_path: Path) -> tuple[int, int]:
    """Line count and size in bytes of a file."""
    size = file_path.stat().st_size
    with open(file_path, 'rb') as f:
        lines = sum(1 for _ in f)
    return lines, size
