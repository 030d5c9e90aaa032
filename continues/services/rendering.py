"""
Handoff document rendering.

Renders a session's extracted context into one Markdown document under a
fixed size budget. Two display modes share every renderer and differ only in
numeric caps:

- inline: the document is embedded in the launch prompt, so caps are tight
- reference: the document is written to disk and read on demand, so caps are roomier

Downstream tools key off these exact strings, so they never change:
``# Session Handoff Context``, ``## Session Overview`` (with ``**Source**``,
``**Session ID**``, ``**Working Directory**``, ``**Last Active**`` rows),
``## Recent Conversation`` and the closing ``You are continuing this session``.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC
from typing import Final

from continues.schemas.samples import (
    CATEGORY_ORDER,
    AskSample,
    EditSample,
    FetchSample,
    GlobSample,
    GrepSample,
    McpSample,
    ReadSample,
    SearchSample,
    ShellSample,
    StructuredToolSample,
    TaskSample,
    ToolCategory,
    ToolSample,
    ToolUsageSummary,
    WriteSample,
)
from continues.schemas.session import ConversationMessage, SessionNotes, UnifiedSession
from continues.services.diff import split_diff

__all__ = [
    'CONTINUATION_DIRECTIVE',
    'HandoffMode',
    'INLINE_CAPS',
    'MAX_LINE_CHARS',
    'REFERENCE_CAPS',
    'RenderCaps',
    'caps_for',
    'render_handoff',
    'source_label',
]


class HandoffMode(enum.StrEnum):
    INLINE = 'inline'
    REFERENCE = 'reference'


@dataclass(frozen=True)
class RenderCaps:
    """Numeric limits for one display mode."""

    shell_samples: int
    shell_tail_lines: int
    file_samples: int  # write and edit
    diff_lines: int
    read_entries: int
    search_entries: int  # grep and glob
    compact_entries: int  # search, fetch, task, ask, mcp


INLINE_CAPS: Final = RenderCaps(
    shell_samples=5,
    shell_tail_lines=3,
    file_samples=3,
    diff_lines=40,
    read_entries=10,
    search_entries=5,
    compact_entries=3,
)

REFERENCE_CAPS: Final = RenderCaps(
    shell_samples=8,
    shell_tail_lines=5,
    file_samples=5,
    diff_lines=200,
    read_entries=20,
    search_entries=10,
    compact_entries=5,
)


def caps_for(mode: HandoffMode | str) -> RenderCaps:
    return REFERENCE_CAPS if HandoffMode(mode) is HandoffMode.REFERENCE else INLINE_CAPS


MAX_LINE_CHARS: Final = 10_000
MAX_MESSAGE_CHARS: Final = 500
MAX_RECENT_MESSAGES: Final = 10
MAX_KEY_DECISIONS: Final = 5

CONTINUATION_DIRECTIVE: Final = (
    '**You are continuing this session. Pick up exactly where it left off: '
    'review the conversation above, check pending tasks, and keep going.**'
)

_SECTION_TITLES: Final[dict[ToolCategory, str]] = {
    'shell': 'Shell',
    'write': 'Write',
    'edit': 'Edit',
    'read': 'Read',
    'grep': 'Grep',
    'glob': 'Glob',
    'search': 'Web Search',
    'fetch': 'Web Fetch',
    'task': 'Subagent Tasks',
    'ask': 'User Questions',
    'mcp': 'MCP',
}

_ROLE_HEADINGS: Final = {
    'user': '👤 User',
    'assistant': '🤖 Assistant',
    'system': '⚙️ System',
    'tool': '🔧 Tool',
}


def source_label(source: str) -> str:
    """Human label for a session source, as registered."""
    # Deferred: the registry imports every reader, and readers import this module
    from continues.registry import ADAPTERS

    adapter = ADAPTERS.get(source)
    return adapter.label if adapter else source


# ==============================================================================
# Inline formatting helpers
# ==============================================================================

_BACKTICK_RUN_RE: Final = re.compile(r'`+')


def _one_line(text: str) -> str:
    return ' '.join(text.split())


def _code(text: str) -> str:
    """Inline code span that survives backticks inside ``text``."""
    text = _one_line(text)
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(text)), default=0)
    ticks = '`' * (longest + 1)
    if longest:
        return f'{ticks} {text} {ticks}'
    return f'{ticks}{text}{ticks}'


def _fence(body: str, info: str = '') -> list[str]:
    """Fenced block whose fence is longer than any backtick run in ``body``."""
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(body)), default=0)
    fence = '`' * max(3, longest + 1)
    return [f'{fence}{info}', *body.split('\n'), fence]


def _heading(tool: ToolUsageSummary) -> str:
    title = _SECTION_TITLES[tool.category]
    noun = 'call' if tool.count == 1 else 'calls'
    if tool.error_count > 0:
        return f'### {title} ({tool.count} {noun}, {tool.error_count} errors)'
    return f'### {title} ({tool.count} {noun})'


def _fallback(sample: ToolSample) -> str:
    return f'- {_code(sample.summary)}'


def _overflow(tool: ToolUsageSummary, rendered: int, noun: str) -> list[str]:
    remaining = tool.count - rendered
    if remaining <= 0:
        return []
    return ['', f'*...and {remaining} more {noun}*']


# ==============================================================================
# Category renderers
# ==============================================================================


def _render_shell(tool: ToolUsageSummary, caps: RenderCaps) -> list[str]:
    lines: list[str] = []
    shown = tool.samples[: caps.shell_samples]
    for sample in shown:
        data = sample.data
        if not isinstance(data, ShellSample):
            lines.append(_fallback(sample))
            continue
        lines.append('')
        lines.append(_code(f'$ {data.command}'))
        status = f'Exit: {data.exit_code}' if data.exit_code is not None else ''
        if data.errored or (data.exit_code not in (None, 0)):
            status = f'{status}  **[ERROR]**'.strip()
        if status:
            lines.append(status)
        if data.stdout_tail:
            tail = '\n'.join(data.stdout_tail.split('\n')[-caps.shell_tail_lines :])
            lines.extend(_fence(tail))

    remaining = tool.count - len(shown)
    if remaining > 0:
        suffix = ' (all exit 0)' if tool.error_count == 0 else ''
        lines.extend(['', f'*...and {remaining} more shell calls{suffix}*'])
    return lines


def _stats(data: WriteSample | EditSample) -> str:
    if isinstance(data, WriteSample) and data.is_new_file and not data.diff_stats:
        return ' (new file)'
    if data.diff_stats:
        new_file = ', new file' if isinstance(data, WriteSample) and data.is_new_file else ''
        return f' (+{data.diff_stats.added} -{data.diff_stats.removed}{new_file})'
    return ''


def _render_file_changes(tool: ToolUsageSummary, caps: RenderCaps) -> list[str]:
    lines: list[str] = []
    shown = tool.samples[: caps.file_samples]
    for sample in shown:
        data = sample.data
        if not isinstance(data, WriteSample | EditSample) or data.category != tool.category:
            lines.append(_fallback(sample))
            continue
        lines.append('')
        lines.append(f'{_code(data.file_path)}{_stats(data)}')
        if not data.diff:
            continue
        header, body, upstream_truncated = split_diff(data.diff)
        lines.extend(_fence('\n'.join(header + body[: caps.diff_lines]), 'diff'))
        hidden = len(body) + upstream_truncated - caps.diff_lines
        if hidden > 0:
            lines.append(f'*+{hidden} lines truncated*')

    remaining = tool.count - len(shown)
    if remaining > 0:
        noun = 'writes' if tool.category == 'write' else 'edits'
        listed = []
        for sample in tool.samples[len(shown) :]:
            data = sample.data
            if isinstance(data, WriteSample | EditSample):
                listed.append(f'{_code(data.file_path)}{_stats(data)}')
        detail = f': {", ".join(listed)}' if listed else ''
        lines.extend(['', f'*...and {remaining} more {noun}{detail}*'])
    return lines


def _render_reads(tool: ToolUsageSummary, caps: RenderCaps) -> list[str]:
    lines: list[str] = []
    shown = tool.samples[: caps.read_entries]
    for sample in shown:
        data = sample.data
        if not isinstance(data, ReadSample):
            lines.append(_fallback(sample))
            continue
        if data.line_start and data.line_end:
            span = f' (lines {data.line_start}-{data.line_end})'
        elif data.line_start:
            span = f' (from line {data.line_start})'
        else:
            span = ''
        lines.append(f'- {_code(data.file_path)}{span}')
    return lines + _overflow(tool, len(shown), 'reads')


def _render_searches(tool: ToolUsageSummary, caps: RenderCaps) -> list[str]:
    lines: list[str] = []
    shown = tool.samples[: caps.search_entries]
    for sample in shown:
        data = sample.data
        if isinstance(data, GrepSample) and tool.category == 'grep':
            where = f' in {_code(data.target_path)}' if data.target_path else ''
            count = f' ({data.match_count} matches)' if data.match_count is not None else ''
            quoted = f'"{data.pattern}"'
            lines.append(f'- {_code(quoted)}{where}{count}')
        elif isinstance(data, GlobSample) and tool.category == 'glob':
            count = f' ({data.result_count} files)' if data.result_count is not None else ''
            lines.append(f'- {_code(data.pattern)}{count}')
        else:
            lines.append(_fallback(sample))
    return lines + _overflow(tool, len(shown), 'searches')


def _with_arrow(text: str, result: str | None) -> str:
    return f'{text} → {_one_line(result)}' if result else text


# One formatter per compact category; a new compact category is one entry here
_COMPACT_FORMATTERS: Final[dict[ToolCategory, Callable[[StructuredToolSample], str | None]]] = {
    'search': lambda d: f'"{_one_line(d.query)}"' if isinstance(d, SearchSample) else None,
    'fetch': lambda d: _with_arrow(_one_line(d.url), d.result_preview) if isinstance(d, FetchSample) else None,
    'task': lambda d: (
        _with_arrow(
            _one_line(d.description) + (f' ({d.agent_type})' if d.agent_type else ''),
            d.result_summary,
        )
        if isinstance(d, TaskSample)
        else None
    ),
    'ask': lambda d: f'"{_one_line(d.question)}"' if isinstance(d, AskSample) else None,
    'mcp': lambda d: (
        _with_arrow(f'{d.tool_name}({_one_line(d.params or "")})', d.result) if isinstance(d, McpSample) else None
    ),
}


def _render_compact(tool: ToolUsageSummary, caps: RenderCaps) -> list[str]:
    formatter = _COMPACT_FORMATTERS.get(tool.category)
    lines: list[str] = []
    shown = tool.samples[: caps.compact_entries]
    for sample in shown:
        text = formatter(sample.data) if formatter and sample.data is not None else None
        lines.append(f'- {text}' if text else _fallback(sample))
    return lines + _overflow(tool, len(shown), 'calls')


_CATEGORY_RENDERERS: Final[dict[ToolCategory, Callable[[ToolUsageSummary, RenderCaps], list[str]]]] = {
    'shell': _render_shell,
    'write': _render_file_changes,
    'edit': _render_file_changes,
    'read': _render_reads,
    'grep': _render_searches,
    'glob': _render_searches,
}


def _category_rank(tool: ToolUsageSummary) -> int:
    if tool.category in CATEGORY_ORDER:
        return CATEGORY_ORDER.index(tool.category)
    return len(CATEGORY_ORDER)


def _render_tool_activity(tool_summaries: Sequence[ToolUsageSummary], caps: RenderCaps) -> list[str]:
    lines = ['## Tool Activity', '']
    for tool in sorted(tool_summaries, key=_category_rank):
        renderer = _CATEGORY_RENDERERS.get(tool.category, _render_compact)
        lines.append(_heading(tool))
        lines.extend(renderer(tool, caps))
        lines.append('')
    lines.append('')
    return lines


# ==============================================================================
# Document
# ==============================================================================


def _truncate_message(content: str) -> str:
    if len(content) <= MAX_MESSAGE_CHARS:
        return content
    text = content[:MAX_MESSAGE_CHARS] + '…'
    # A cut inside a code block would swallow the rest of the document
    if sum(1 for line in text.split('\n') if line.lstrip().startswith('```')) % 2:
        text += '\n```'
    return text


def _cell(value: str) -> str:
    return _one_line(value).replace('|', '\\|')


def _overview(
    session: UnifiedSession,
    message_count: int,
    files_modified_count: int,
    notes: SessionNotes | None,
) -> list[str]:
    rows = [
        ('Source', source_label(session.source)),
        ('Session ID', _code(session.id)),
        ('Working Directory', _code(session.cwd)),
    ]
    if session.repo:
        branch = f' @ {_code(session.branch)}' if session.branch else ''
        rows.append(('Repository', f'{session.repo}{branch}'))
    if session.model:
        rows.append(('Model', session.model))
    if notes and notes.model and notes.model != session.model:
        rows.append(('Model', notes.model))
    rows.append(('Last Active', session.updated_at.astimezone(UTC).strftime('%Y-%m-%d %H:%M')))
    if notes and notes.token_usage:
        usage = notes.token_usage
        rows.append(('Tokens Used', f'{usage.input:,} in / {usage.output:,} out'))
    rows.append(('Files Modified', str(files_modified_count)))
    rows.append(('Messages', str(message_count)))

    lines = ['## Session Overview', '', '| Field | Value |', '|-------|-------|']
    lines.extend(f'| **{name}** | {_cell(value)} |' for name, value in rows)
    return lines + ['', '']


def _finalize(lines: list[str]) -> str:
    """Enforce the output invariants: no NULs, no overlong lines, valid UTF-8."""
    out = []
    for line in '\n'.join(lines).replace('\x00', '').split('\n'):
        if len(line) >= MAX_LINE_CHARS:
            line = line[: MAX_LINE_CHARS - 2] + '…'
        out.append(line)
    return '\n'.join(out).encode('utf-8', errors='replace').decode('utf-8')


def render_handoff(
    session: UnifiedSession,
    messages: Sequence[ConversationMessage],
    files_modified: Sequence[str],
    pending_tasks: Sequence[str],
    tool_summaries: Sequence[ToolUsageSummary] = (),
    notes: SessionNotes | None = None,
    mode: HandoffMode | str = HandoffMode.INLINE,
) -> str:
    """
    Render the handoff Markdown document.

    Sections, in order: title, Session Overview table, Summary, Tool Activity,
    Key Decisions, Recent Conversation, Files Modified, Pending Tasks, and the
    closing continuation directive. Optional sections are omitted when empty.

    Args:
        session: Session metadata
        messages: Conversation messages (the last 10 are shown)
        files_modified: Deduplicated modified file paths
        pending_tasks: Open tasks for the receiving agent
        tool_summaries: Per-bucket tool activity
        notes: Model, token usage and reasoning highlights
        mode: Display mode selecting the numeric caps

    Returns:
        Markdown string
    """
    caps = caps_for(mode)
    lines = ['# Session Handoff Context', '', '']
    lines.extend(_overview(session, len(messages), len(files_modified), notes))

    if session.summary:
        lines.extend(['## Summary', '', f'> {_one_line(session.summary)}', '', ''])

    if tool_summaries:
        lines.extend(_render_tool_activity(tool_summaries, caps))

    if notes and notes.reasoning:
        lines.extend(['## Key Decisions', ''])
        lines.extend(f'- 💭 {_one_line(thought)}' for thought in notes.reasoning[:MAX_KEY_DECISIONS])
        lines.extend(['', ''])

    recent = list(messages)[-MAX_RECENT_MESSAGES:]
    lines.extend(['## Recent Conversation', ''])
    if not recent:
        lines.extend(['*No conversation messages were recorded.*', ''])
    for message in recent:
        lines.extend([f'### {_ROLE_HEADINGS[message.role]}', '', _truncate_message(message.content), ''])
    lines.append('')

    if files_modified:
        lines.extend(['## Files Modified', ''])
        lines.extend(f'- `{path}`' for path in files_modified)
        lines.extend(['', ''])

    if pending_tasks:
        lines.extend(['## Pending Tasks', ''])
        lines.extend(f'- [ ] {_one_line(task)}' for task in pending_tasks)
        lines.extend(['', ''])

    lines.extend(['---', '', CONTINUATION_DIRECTIVE])
    return _finalize(lines)
