"""
Tool-activity extraction.

Turns reader-neutral ToolInvocation/ToolResult records into bounded tool
summaries in two explicit steps:

1. build_result_lookup: call ID -> ToolResult (result text capped)
2. summarize_invocations: fold invocations through a SummaryCollector

Also hosts the helpers shared by every reader: Anthropic content-block
conversion, reasoning highlights, shell file-write tracking, patch headers,
and the balanced message tail.
"""

from __future__ import annotations

import json
import re
import shlex
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Final

from continues.base_model import StrictModel
from continues.schemas.invocations import ToolInvocation, ToolResult
from continues.schemas.samples import (
    AskSample,
    DiffStats,
    EditSample,
    FetchSample,
    GlobSample,
    GrepSample,
    McpSample,
    ReadSample,
    SearchSample,
    ShellSample,
    TaskSample,
    ToolCategory,
    ToolUsageSummary,
    WriteSample,
)
from continues.schemas.session import ConversationMessage
from continues.services.classifier import TASK_OUTPUT_TOOLS, classify
from continues.services.diff import (
    cap_diff,
    count_diff_stats,
    extract_exit_code,
    extract_stdout_tail,
    format_edit_diff,
    format_new_file_diff,
)
from continues.services.summarizer import (
    SummaryCollector,
    fetch_summary,
    file_summary,
    glob_summary,
    grep_summary,
    mcp_summary,
    search_summary,
    shell_summary,
    subagent_summary,
    truncate,
    truncate_start,
    with_result,
)

__all__ = [
    'MAX_RESULT_CHARS',
    'ToolActivity',
    'build_result_lookup',
    'extract_thinking_highlights',
    'first_sentence',
    'invocations_from_content_blocks',
    'parse_file_count',
    'parse_match_count',
    'patch_files',
    'summarize_invocations',
    'track_shell_file_writes',
    'trim_messages',
]

MAX_RESULT_CHARS: Final = 4000
MAX_TEXT_CHARS: Final = 100  # Every text field of a sample
MAX_REASONING_HIGHLIGHTS: Final = 5
MAX_RECENT_MESSAGES: Final = 10


class ToolActivity(StrictModel):
    """Result of folding a session's invocations."""

    summaries: list[ToolUsageSummary]
    files_modified: list[str]


# ==============================================================================
# Step 1: result lookup
# ==============================================================================


def build_result_lookup(results: Iterable[ToolResult]) -> dict[str, ToolResult]:
    """
    Index tool results by call ID, capping each result's text.

    A later result for the same call ID replaces an earlier one.
    """
    lookup: dict[str, ToolResult] = {}
    for result in results:
        if not result.call_id:
            continue
        if len(result.text) > MAX_RESULT_CHARS:
            result = result.model_copy(update={'text': result.text[:MAX_RESULT_CHARS]})
        lookup[result.call_id] = result
    return lookup


# ==============================================================================
# Step 2: fold invocations
# ==============================================================================


def summarize_invocations(
    invocations: Iterable[ToolInvocation],
    lookup: Mapping[str, ToolResult] | None = None,
    *,
    collector: SummaryCollector | None = None,
) -> ToolActivity:
    """
    Fold invocations into bounded per-bucket summaries.

    Args:
        invocations: Tool calls in session order
        lookup: Results keyed by call ID (from build_result_lookup)
        collector: Existing collector to continue folding into (readers that
            track extra file writes pass their own)

    Returns:
        ToolActivity with summaries in first-seen order and modified files
    """
    lookup = lookup or {}
    collector = collector or SummaryCollector()

    for invocation in invocations:
        category = classify(invocation.name)
        if category is None:
            continue

        result_text = invocation.result
        is_error = invocation.is_error
        if result_text is None and invocation.call_id and invocation.call_id in lookup:
            entry = lookup[invocation.call_id]
            result_text = entry.text
            is_error = is_error or entry.is_error
        if result_text is not None:
            result_text = result_text[:MAX_RESULT_CHARS] or None

        _RECORDERS[category](collector, invocation, result_text, is_error)

    return ToolActivity(summaries=collector.summaries(), files_modified=collector.files_modified())


def _arg(arguments: Mapping[str, Any], *keys: str) -> str:
    """First non-empty string argument among ``keys``."""
    for key in keys:
        value = arguments.get(key)
        if isinstance(value, str) and value:
            return value
    return ''


def _int_arg(arguments: Mapping[str, Any], *keys: str) -> int | None:
    for key in keys:
        value = arguments.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
    return None


def _command_text(arguments: Mapping[str, Any]) -> str:
    value = arguments.get('command') or arguments.get('cmd') or ''
    if isinstance(value, list):
        parts = [str(part) for part in value]
        # ['bash', '-lc', 'actual command']
        if len(parts) >= 3 and parts[1] in ('-lc', '-c'):
            return parts[2]
        return shlex.join(parts)
    return str(value)


def _record_shell(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    command = _command_text(inv.arguments)
    exit_code = extract_exit_code(result)
    errored = is_error or (exit_code is not None and exit_code != 0)
    data = ShellSample(
        command=truncate(command, MAX_TEXT_CHARS),
        exit_code=exit_code,
        stdout_tail=(truncate_start(extract_stdout_tail(result), MAX_TEXT_CHARS) or None) if result else None,
        errored=errored,
    )
    collector.add('shell', shell_summary(command, result), data=data, is_error=errored)
    track_shell_file_writes(collector, command)


def _file_path(inv: ToolInvocation) -> str:
    return _arg(inv.arguments, 'file_path', 'filePath', 'path', 'absolute_path', 'target_file')


def _record_read(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    path = _file_path(inv)
    line_start = _int_arg(inv.arguments, 'offset', 'start_line')
    limit = _int_arg(inv.arguments, 'limit')
    line_end = (line_start or 1) + limit - 1 if limit else _int_arg(inv.arguments, 'end_line')
    data = ReadSample(file_path=truncate_start(path, MAX_TEXT_CHARS), line_start=line_start, line_end=line_end)
    summary = with_result(file_summary('read', path), result[:80] if result else None)
    collector.add('read', summary, data=data, file_path=path, is_error=is_error)


def _provided_diff(inv: ToolInvocation) -> tuple[str | None, DiffStats | None]:
    if not inv.file_diff:
        return None, None
    diff = cap_diff(inv.file_diff).diff
    return diff, inv.diff_stats or count_diff_stats(diff)


def _record_write(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    path = _file_path(inv)
    is_new_file = inv.is_new_file if inv.is_new_file is not None else True
    diff, diff_stats = _provided_diff(inv)
    if diff is None:
        content = _arg(inv.arguments, 'content', 'file_text', 'contents')
        if content:
            diff = format_new_file_diff(content, path).diff
            diff_stats = count_diff_stats(diff)
    data = WriteSample(
        file_path=truncate_start(path, MAX_TEXT_CHARS),
        is_new_file=is_new_file,
        diff=diff,
        diff_stats=diff_stats,
    )
    summary = with_result(file_summary('write', path, diff_stats, is_new_file), result[:80] if result else None)
    collector.add('write', summary, data=data, file_path=path, is_write=True, is_error=is_error)


def _record_edit(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    patch = _arg(inv.arguments, 'input', 'patch')
    files = patch_files(patch) if patch else []
    path = _file_path(inv) or (files[0] if files else '')

    diff, diff_stats = _provided_diff(inv)
    if diff is None:
        old = _arg(inv.arguments, 'old_string', 'oldString', 'old_str')
        new = _arg(inv.arguments, 'new_string', 'newString', 'new_str')
        if old or new:
            diff = format_edit_diff(old, new, path).diff
        elif patch:
            diff = cap_diff(patch).diff
        if diff is not None:
            diff_stats = count_diff_stats(diff)

    data = EditSample(file_path=truncate_start(path, MAX_TEXT_CHARS), diff=diff, diff_stats=diff_stats)
    summary = with_result(file_summary('edit', path, diff_stats), result[:80] if result else None)
    collector.add('edit', summary, data=data, file_path=path, is_write=True, is_error=is_error)
    for extra in files[1:]:
        collector.track_file(extra)


def _record_grep(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    pattern = _arg(inv.arguments, 'pattern', 'query', 'regex')
    target = _arg(inv.arguments, 'path', 'dir_path', 'include') or None
    data = GrepSample(
        pattern=truncate(pattern, MAX_TEXT_CHARS),
        target_path=truncate_start(target, MAX_TEXT_CHARS) if target else None,
        match_count=parse_match_count(result) if result else None,
    )
    summary = with_result(grep_summary(pattern, target), result[:80] if result else None)
    collector.add('grep', summary, data=data, is_error=is_error)


def _record_glob(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    pattern = _arg(inv.arguments, 'pattern', 'glob_pattern', 'path', 'dir_path')
    data = GlobSample(
        pattern=truncate(pattern, MAX_TEXT_CHARS),
        result_count=parse_file_count(result) if result else None,
    )
    summary = with_result(glob_summary(pattern), result[:80] if result else None)
    collector.add('glob', summary, data=data, is_error=is_error)


def _record_search(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    query = _arg(inv.arguments, 'query', 'q', 'search_term')
    data = SearchSample(query=truncate(query, MAX_TEXT_CHARS))
    collector.add('search', search_summary(query), data=data, is_error=is_error)


def _record_fetch(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    url = _arg(inv.arguments, 'url', 'prompt')
    data = FetchSample(url=truncate(url, MAX_TEXT_CHARS), result_preview=result[:MAX_TEXT_CHARS] if result else None)
    collector.add('fetch', fetch_summary(url), data=data, is_error=is_error)


def _record_task(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    agent_type = _arg(inv.arguments, 'subagent_type', 'agent_type') or None
    if inv.name in TASK_OUTPUT_TOOLS:
        description = _arg(inv.arguments, 'content', 'result', 'task_id')
    else:
        description = _arg(inv.arguments, 'description', 'prompt')
    data = TaskSample(
        description=truncate(description, MAX_TEXT_CHARS),
        agent_type=truncate(agent_type, MAX_TEXT_CHARS) if agent_type else None,
        result_summary=result[:MAX_TEXT_CHARS] if result else None,
    )
    collector.add('task', subagent_summary(description, agent_type), data=data, is_error=is_error)


def _record_ask(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    question = _arg(inv.arguments, 'question', 'prompt', 'message')
    if not question:
        questions = inv.arguments.get('questions')
        if isinstance(questions, list) and questions and isinstance(questions[0], Mapping):
            question = _arg(questions[0], 'question', 'header')
    question = truncate(question, 80)
    collector.add('ask', f'ask: "{question}"', data=AskSample(question=question), is_error=is_error)


def _format_params(arguments: Mapping[str, Any]) -> str:
    """Compact ``key=value`` rendering with each value truncated."""
    parts = []
    for key, value in arguments.items():
        text = value if isinstance(value, str) else json.dumps(value, default=str)
        parts.append(f'{key}={truncate(text, MAX_TEXT_CHARS)}')
    return truncate(', '.join(parts), MAX_TEXT_CHARS)


def _record_mcp(collector: SummaryCollector, inv: ToolInvocation, result: str | None, is_error: bool) -> None:
    params = _format_params(inv.arguments) or None
    data = McpSample(
        tool_name=truncate(inv.name, MAX_TEXT_CHARS),
        params=params,
        result=result[:MAX_TEXT_CHARS] if result else None,
    )
    summary = mcp_summary(inv.name, json.dumps(inv.arguments, default=str), result[:80] if result else None)
    collector.add('mcp', summary, data=data, is_error=is_error)


_Recorder = Callable[[SummaryCollector, ToolInvocation, str | None, bool], None]

_RECORDERS: Final[dict[ToolCategory, _Recorder]] = {
    'shell': _record_shell,
    'read': _record_read,
    'write': _record_write,
    'edit': _record_edit,
    'grep': _record_grep,
    'glob': _record_glob,
    'search': _record_search,
    'fetch': _record_fetch,
    'task': _record_task,
    'ask': _record_ask,
    'mcp': _record_mcp,
}


# ==============================================================================
# Result-text parsing
# ==============================================================================

_FOUND_RE: Final = re.compile(r'found\s+(\d+)', re.IGNORECASE)
_MATCHES_RE: Final = re.compile(r'(\d+)\s+match', re.IGNORECASE)
_FILES_RE: Final = re.compile(r'(\d+)\s+files?\b', re.IGNORECASE)


def _non_empty_line_count(text: str) -> int | None:
    count = sum(1 for line in text.split('\n') if line.strip())
    return count or None


def parse_match_count(result: str) -> int | None:
    """Match count from grep output: 'Found N', 'N matches', else non-empty lines."""
    match = _FOUND_RE.search(result) or _MATCHES_RE.search(result)
    if match:
        return int(match.group(1))
    return _non_empty_line_count(result)


def parse_file_count(result: str) -> int | None:
    """File count from glob output: 'Found N', 'N files', else non-empty lines."""
    match = _FOUND_RE.search(result) or _FILES_RE.search(result)
    if match:
        return int(match.group(1))
    return _non_empty_line_count(result)


# ==============================================================================
# Shell write tracking and patches
# ==============================================================================

_SED_INPLACE_RE: Final = re.compile(r'sed\s+-i\S*\s+(?:\'[^\']*\'|"[^"]*"|\S+)\s+[\'"]?([^\s;|&\'"]+)')
_REDIRECT_RE: Final = re.compile(r'>\s*[\'"]?([^\s;|&\'"]+)')
_TEE_RE: Final = re.compile(r'tee\s+(?:-a\s+)?[\'"]?([^\s;|&\'"]+)')
_MV_CP_RE: Final = re.compile(r'^(?:mv|cp)\s+.*\s+[\'"]?([^\s;|&\'"]+)$')
_PATCH_FILE_RE: Final = re.compile(r'^\*\*\* (?:Add|Update|Delete) File: (.+)$', re.MULTILINE)


def track_shell_file_writes(collector: SummaryCollector, command: str) -> None:
    """Record the file a shell command writes via sed -i, redirection, tee, or mv/cp."""
    if match := _SED_INPLACE_RE.search(command):
        collector.track_file(match.group(1))
        return
    match = _REDIRECT_RE.search(command)
    if match and not match.group(1).startswith(('>', '&')) and match.group(1) != '/dev/null':
        collector.track_file(match.group(1))
        return
    if match := _TEE_RE.search(command):
        collector.track_file(match.group(1))
        return
    if match := _MV_CP_RE.match(command.strip()):
        collector.track_file(match.group(1))


def patch_files(patch: str) -> list[str]:
    """Files named by ``*** Add|Update|Delete File:`` headers in an apply_patch body."""
    return [name.strip() for name in _PATCH_FILE_RE.findall(patch)]


# ==============================================================================
# Anthropic content blocks
# ==============================================================================


def _result_block_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, Mapping) and block.get('type') == 'text' and isinstance(block.get('text'), str):
                return block['text']
    return ''


def invocations_from_content_blocks(
    contents: Iterable[Any],
) -> tuple[list[ToolInvocation], list[ToolResult]]:
    """
    Collect ``tool_use`` and ``tool_result`` blocks from Anthropic-style message contents.

    Args:
        contents: Each message's ``content`` (string or list of blocks); strings are ignored

    Returns:
        Tuple of (invocations, results) in session order
    """
    invocations: list[ToolInvocation] = []
    results: list[ToolResult] = []
    for content in contents:
        if not isinstance(content, list):
            continue
        for block in content:
            if not isinstance(block, Mapping):
                continue
            block_type = block.get('type')
            if block_type == 'tool_use' and isinstance(block.get('name'), str) and block['name']:
                arguments = block.get('input')
                invocations.append(
                    ToolInvocation(
                        name=block['name'],
                        arguments=dict(arguments) if isinstance(arguments, Mapping) else {},
                        call_id=block.get('id') if isinstance(block.get('id'), str) else None,
                    )
                )
            elif block_type == 'tool_result' and isinstance(block.get('tool_use_id'), str):
                text = _result_block_text(block.get('content'))
                if text:
                    results.append(
                        ToolResult(
                            call_id=block['tool_use_id'],
                            text=text[:MAX_RESULT_CHARS],
                            is_error=block.get('is_error') is True,
                        )
                    )
    return invocations, results


# ==============================================================================
# Reasoning and messages
# ==============================================================================

_SENTENCE_END_RE: Final = re.compile(r'[.\n]')


def first_sentence(text: str, min_chars: int = 20) -> str | None:
    """
    First sentence of a thinking block, capped at 200 chars.

    Texts of ``min_chars`` or fewer are not worth a highlight and yield None.
    """
    if len(text) <= min_chars:
        return None
    head = _SENTENCE_END_RE.split(text, maxsplit=1)[0].strip()
    return truncate(head, 200) if head else None


def extract_thinking_highlights(contents: Iterable[Any], max_highlights: int = MAX_REASONING_HIGHLIGHTS) -> list[str]:
    """First-sentence highlights from ``thinking`` blocks, at most ``max_highlights``."""
    highlights: list[str] = []
    for content in contents:
        if not isinstance(content, list):
            continue
        for block in content:
            if len(highlights) >= max_highlights:
                return highlights
            if not isinstance(block, Mapping) or block.get('type') != 'thinking':
                continue
            text = block.get('thinking') or block.get('text') or ''
            if isinstance(text, str) and (highlight := first_sentence(text)):
                highlights.append(highlight)
    return highlights


def trim_messages(
    messages: Sequence[ConversationMessage],
    max_count: int = MAX_RECENT_MESSAGES,
) -> list[ConversationMessage]:
    """
    Balanced tail of at most ``max_count`` messages.

    When the plain tail holds no user message, the window starts at the last
    user message instead, so the receiving agent always sees the latest ask.
    """
    tail = list(messages[-max_count:])
    if len(messages) <= max_count or any(message.role == 'user' for message in tail):
        return tail
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == 'user':
            return list(messages[index : index + max_count])
    return tail
