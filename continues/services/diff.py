"""
Diff and shell-output utilities.

Pure functions that turn before/after strings into capped unified-diff text,
count added/removed lines, and pull exit codes and output tails out of free-text
tool results. Failures never raise: an unparseable value is simply absent.
"""

from __future__ import annotations

import re
from typing import Final

from continues.base_model import StrictModel
from continues.schemas.samples import DiffStats

__all__ = [
    'DiffResult',
    'MAX_DIFF_LINES',
    'MAX_DIFF_LINE_CHARS',
    'cap_diff',
    'count_diff_stats',
    'diff_body_lines',
    'extract_exit_code',
    'extract_stdout_tail',
    'format_edit_diff',
    'format_new_file_diff',
    'split_diff',
    'truncated_line_count',
]

MAX_DIFF_LINES: Final = 200
MAX_DIFF_LINE_CHARS: Final = 400
STDOUT_TAIL_LINES: Final = 5
MAX_TAIL_LINE_CHARS: Final = 300

_EXIT_CODE_RE: Final = re.compile(r'exit(?:ed with)? code[:\s]+(\d+)', re.IGNORECASE)
_TRUNCATION_MARKER_RE: Final = re.compile(r'^\+(\d+) lines truncated$')


class DiffResult(StrictModel):
    """Formatted diff plus how many body lines were dropped by the cap."""

    diff: str
    truncated: int


def _clip(line: str, max_chars: int) -> str:
    if len(line) <= max_chars:
        return line
    return line[: max_chars - 1] + '…'


def _finish(header: list[str], body: list[str], max_lines: int) -> DiffResult:
    kept = [_clip(line, MAX_DIFF_LINE_CHARS) for line in body[:max_lines]]
    truncated = max(0, len(body) - max_lines)
    lines = header + kept
    if truncated > 0:
        lines.append(f'+{truncated} lines truncated')
    return DiffResult(diff='\n'.join(lines), truncated=truncated)


# ==============================================================================
# Diff construction
# ==============================================================================


def format_new_file_diff(content: str, file_path: str, max_lines: int = MAX_DIFF_LINES) -> DiffResult:
    """
    Format new-file content as a unified diff where every line is an addition.

    Args:
        content: Full file content
        file_path: Path shown in the ``+++`` header
        max_lines: Body line cap; overflow becomes a ``+N lines truncated`` marker

    Returns:
        DiffResult with the diff text and the number of dropped body lines
    """
    header = ['--- /dev/null', f'+++ b/{file_path}']
    body = [f'+{line}' for line in content.split('\n')]
    return _finish(header, body, max_lines)


def format_edit_diff(old: str, new: str, file_path: str, max_lines: int = MAX_DIFF_LINES) -> DiffResult:
    """
    Format an exact-string replacement as a single hunk.

    The old text is emitted as ``-`` lines followed by the new text as ``+``
    lines. Either side may be empty (pure insertion or deletion).
    """
    header = [f'--- a/{file_path}', f'+++ b/{file_path}']
    body: list[str] = []
    if old:
        body.extend(f'-{line}' for line in old.split('\n'))
    if new:
        body.extend(f'+{line}' for line in new.split('\n'))
    return _finish(header, body, max_lines)


def cap_diff(diff: str, max_lines: int = MAX_DIFF_LINES) -> DiffResult:
    """Cap a pre-rendered unified diff (e.g. one a tool logged itself)."""
    lines = diff.rstrip('\n').split('\n')
    size = _header_size(lines)
    header = [_clip(line, MAX_DIFF_LINE_CHARS) for line in lines[:size]]
    return _finish(header, lines[size:], max_lines)


# ==============================================================================
# Diff inspection
# ==============================================================================


def _header_size(lines: list[str]) -> int:
    """
    Number of leading header lines: any preamble (Index:, ====) plus one ``---``/``+++`` pair.

    Only the first pair is header, so body lines that start with ``---`` or
    ``+++`` (a removed SQL comment, an added markdown rule) stay in the body.
    """
    size = 0
    while size < len(lines) and not lines[size].startswith(('+', '-', ' ', '@@')):
        size += 1
    pair = lines[size : size + 2]
    if len(pair) == 2 and pair[0].startswith('---') and pair[1].startswith('+++'):
        size += 2
    return size


def truncated_line_count(diff: str) -> int:
    """Lines dropped upstream, read from a trailing ``+N lines truncated`` marker."""
    last = diff.rstrip('\n').rsplit('\n', 1)[-1]
    match = _TRUNCATION_MARKER_RE.match(last)
    return int(match.group(1)) if match else 0


def split_diff(diff: str) -> tuple[list[str], list[str], int]:
    """
    Split a diff into header lines, body lines, and the upstream-truncated count.

    The header is any leading preamble (Index:, ====) plus the first ``---``/``+++``
    pair; the trailing ``+N lines truncated`` marker is removed from the body.
    """
    lines = diff.rstrip('\n').split('\n')
    truncated = truncated_line_count(diff)
    if truncated > 0:
        lines = lines[:-1]
    size = _header_size(lines)
    return lines[:size], lines[size:], truncated


def diff_body_lines(diff: str) -> list[str]:
    """Diff lines without the header block or the truncation marker."""
    return split_diff(diff)[1]


def count_diff_stats(diff: str) -> DiffStats:
    """
    Count added and removed lines in a unified diff.

    The header pair (``---``/``+++``) and the truncation marker are not counted.
    """
    added = 0
    removed = 0
    for line in diff_body_lines(diff):
        if line.startswith('+'):
            added += 1
        elif line.startswith('-'):
            removed += 1
    return DiffStats(added=added, removed=removed)


# ==============================================================================
# Shell output
# ==============================================================================


def extract_exit_code(text: str | None) -> int | None:
    """Parse ``exit code N`` / ``exited with code N`` from result text; None if absent."""
    if not text:
        return None
    match = _EXIT_CODE_RE.search(text)
    return int(match.group(1)) if match else None


def extract_stdout_tail(output: str, lines: int = STDOUT_TAIL_LINES) -> str:
    """Last ``lines`` non-empty lines of command output, each clipped."""
    non_empty = [line for line in output.split('\n') if line.strip()]
    return '\n'.join(_clip(line, MAX_TAIL_LINE_CHARS) for line in non_empty[-lines:])
