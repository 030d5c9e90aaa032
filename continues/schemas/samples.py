"""
Structured tool-sample models.

One model per tool category, discriminated by the ``category`` field.
Every payload is size-bounded by the extraction step (diffs <= 200 lines,
previews <= 100 chars), so renderers never re-check lengths.
"""

from __future__ import annotations

from typing import Annotated, Literal

import pydantic

from continues.base_model import StrictModel

__all__ = [
    'AskSample',
    'CATEGORY_ORDER',
    'DiffStats',
    'EditSample',
    'FetchSample',
    'GlobSample',
    'GrepSample',
    'McpSample',
    'ReadSample',
    'SearchSample',
    'ShellSample',
    'StructuredToolSample',
    'TaskSample',
    'ToolCategory',
    'ToolSample',
    'ToolUsageSummary',
    'WriteSample',
]

ToolCategory = Literal['shell', 'read', 'write', 'edit', 'grep', 'glob', 'search', 'fetch', 'task', 'ask', 'mcp']

# Render priority; anything unclassified sorts after the last entry
CATEGORY_ORDER: tuple[ToolCategory, ...] = (
    'shell',
    'write',
    'edit',
    'read',
    'grep',
    'glob',
    'search',
    'fetch',
    'task',
    'ask',
    'mcp',
)


class DiffStats(StrictModel):
    """Line counts from a unified diff."""

    added: int
    removed: int


# ==============================================================================
# Per-category samples
# ==============================================================================


class ShellSample(StrictModel):
    category: Literal['shell'] = 'shell'
    command: str
    exit_code: int | None = None
    stdout_tail: str | None = None  # Last 5 non-empty output lines
    errored: bool = False  # Explicit error flag OR non-zero exit code


class ReadSample(StrictModel):
    category: Literal['read'] = 'read'
    file_path: str
    line_start: int | None = None
    line_end: int | None = None


class WriteSample(StrictModel):
    category: Literal['write'] = 'write'
    file_path: str
    is_new_file: bool = False
    diff: str | None = None  # Capped; may end with a '+N lines truncated' marker
    diff_stats: DiffStats | None = None


class EditSample(StrictModel):
    category: Literal['edit'] = 'edit'
    file_path: str
    diff: str | None = None
    diff_stats: DiffStats | None = None


class GrepSample(StrictModel):
    category: Literal['grep'] = 'grep'
    pattern: str
    target_path: str | None = None
    match_count: int | None = None  # Never fabricated - absent when unparseable


class GlobSample(StrictModel):
    category: Literal['glob'] = 'glob'
    pattern: str
    result_count: int | None = None


class SearchSample(StrictModel):
    category: Literal['search'] = 'search'
    query: str


class FetchSample(StrictModel):
    category: Literal['fetch'] = 'fetch'
    url: str
    result_preview: str | None = None


class TaskSample(StrictModel):
    category: Literal['task'] = 'task'
    description: str
    agent_type: str | None = None
    result_summary: str | None = None


class AskSample(StrictModel):
    category: Literal['ask'] = 'ask'
    question: str


class McpSample(StrictModel):
    category: Literal['mcp'] = 'mcp'
    tool_name: str
    params: str | None = None
    result: str | None = None


StructuredToolSample = Annotated[
    ShellSample
    | ReadSample
    | WriteSample
    | EditSample
    | GrepSample
    | GlobSample
    | SearchSample
    | FetchSample
    | TaskSample
    | AskSample
    | McpSample,
    pydantic.Field(discriminator='category'),
]


# ==============================================================================
# Aggregates
# ==============================================================================


class ToolSample(StrictModel):
    """One retained invocation: a human one-liner plus optional structured data."""

    summary: str
    data: StructuredToolSample | None = None


class ToolUsageSummary(StrictModel):
    """All invocations of one tool bucket within a session.

    ``count`` is exact; ``samples`` is a bounded prefix capped by the
    category's sample limit, so ``len(samples) <= count`` always holds.
    """

    name: str
    category: ToolCategory
    count: int
    error_count: int = 0
    samples: list[ToolSample] = pydantic.Field(default_factory=list)
