"""
Tool-call summaries and the per-session SummaryCollector.

Formatting helpers produce the one-line human summaries every reader shares;
SummaryCollector folds invocations into bounded per-bucket sample lists while
keeping exact counts.
"""

from __future__ import annotations

from continues.schemas.samples import DiffStats, StructuredToolSample, ToolCategory, ToolSample, ToolUsageSummary
from continues.services.classifier import sample_limit
from continues.services.diff import extract_exit_code

__all__ = [
    'SummaryCollector',
    'fetch_summary',
    'file_summary',
    'glob_summary',
    'grep_summary',
    'mcp_summary',
    'search_summary',
    'shell_summary',
    'subagent_summary',
    'truncate',
    'truncate_start',
    'with_result',
]


# ==============================================================================
# Formatting helpers
# ==============================================================================


def truncate(text: str, max_chars: int) -> str:
    """Truncate to ``max_chars``, ending with '...' when shortened."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3] + '...'


def truncate_start(text: str, max_chars: int) -> str:
    """Like truncate(), but keeps the end: the useful part of paths and output tails."""
    if len(text) <= max_chars:
        return text
    return '...' + text[len(text) - max_chars + 3 :]


def with_result(summary: str, result: str | None) -> str:
    if not result:
        return summary
    return f'{summary} → "{truncate(result, 80)}"'


def shell_summary(command: str, result: str | None = None) -> str:
    summary = f'$ {truncate(command, 80)}'
    exit_code = extract_exit_code(result)
    if exit_code is not None:
        return f'{summary} → exit {exit_code}'
    if result:
        return f'{summary} → "{truncate(result, 80)}"'
    return summary


def file_summary(
    op: str,
    file_path: str,
    diff_stats: DiffStats | None = None,
    is_new_file: bool = False,
) -> str:
    summary = f'{op} {file_path}'
    if is_new_file:
        return f'{summary} (new file)'
    if diff_stats:
        return f'{summary} (+{diff_stats.added} -{diff_stats.removed} lines)'
    return summary


def grep_summary(pattern: str, target_path: str | None = None) -> str:
    return f'grep "{pattern}" {target_path or ""}'.strip()


def glob_summary(pattern: str) -> str:
    return f'glob "{pattern}"'


def search_summary(query: str) -> str:
    return f'search "{truncate(query, 60)}"'


def fetch_summary(url: str) -> str:
    return f'fetch {truncate(url, 80)}'


def mcp_summary(name: str, params: str, result: str | None = None) -> str:
    return with_result(f'{name}({truncate(params, 100)})', result)


def subagent_summary(description: str, agent_type: str | None = None) -> str:
    if agent_type:
        return f'task "{truncate(description, 60)}" ({agent_type})'
    return f'task-output: {truncate(description, 80)}'


# ==============================================================================
# Collector
# ==============================================================================


class _Bucket:
    __slots__ = ('category', 'count', 'error_count', 'samples')

    def __init__(self, category: ToolCategory) -> None:
        self.category = category
        self.count = 0
        self.error_count = 0
        self.samples: list[ToolSample] = []


class SummaryCollector:
    """
    Accumulates tool invocations into bounded per-category summaries.

    Counts are exact; samples stop at the category's limit so memory stays
    bounded for sessions with thousands of calls. MCP and unknown tools share
    the single 'mcp' bucket; each McpSample keeps its own tool name.
    """

    def __init__(self) -> None:
        self._buckets: dict[ToolCategory, _Bucket] = {}
        self._files: dict[str, None] = {}  # Ordered set

    def add(
        self,
        category: ToolCategory,
        summary: str,
        *,
        data: StructuredToolSample | None = None,
        file_path: str | None = None,
        is_write: bool = False,
        is_error: bool = False,
    ) -> None:
        """
        Record one invocation.

        Args:
            category: Classified tool category
            summary: One-line human summary
            data: Structured payload kept with the sample
            file_path: File touched by the call
            is_write: Whether the call modified ``file_path``
            is_error: Whether the call failed
        """
        bucket = self._buckets.get(category)
        if bucket is None:
            bucket = self._buckets[category] = _Bucket(category)

        bucket.count += 1
        if is_error:
            bucket.error_count += 1
        if len(bucket.samples) < sample_limit(category):
            bucket.samples.append(ToolSample(summary=summary, data=data))

        if is_write and file_path:
            self._files[file_path] = None

    def track_file(self, file_path: str) -> None:
        """Record a modified file without adding a tool summary entry."""
        if file_path:
            self._files[file_path] = None

    def summaries(self) -> list[ToolUsageSummary]:
        """One summary per category, in first-seen order."""
        return [
            ToolUsageSummary(
                name=key,
                category=bucket.category,
                count=bucket.count,
                error_count=bucket.error_count,
                samples=list(bucket.samples),
            )
            for key, bucket in self._buckets.items()
        ]

    def files_modified(self) -> list[str]:
        """Deduplicated modified files in insertion order."""
        return list(self._files)
