"""
Claude Code session reader.

Sessions live at ~/.claude/projects/<encoded-project>/<uuid>.jsonl, one record
per line. Records carry ``sessionId``, ``cwd`` and ``gitBranch`` at top level
and an Anthropic-style ``message`` with string or block content.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import pydantic

from continues.exceptions import ParseError
from continues.parsers.content import (
    clean_summary,
    clean_user_query_text,
    extract_repo_from_cwd,
    extract_text_from_blocks,
    is_real_user_message,
    is_system_content,
)
from continues.parsers.helpers import UUID_RE, build_context, file_times, find_files, parse_timestamp
from continues.parsers.jsonl import file_stats, read_jsonl, scan_jsonl_head
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.session import (
    CacheTokens,
    ConversationMessage,
    SessionContext,
    SessionNotes,
    TokenUsage,
    UnifiedSession,
)
from continues.services.extraction import (
    build_result_lookup,
    extract_thinking_highlights,
    invocations_from_content_blocks,
    summarize_invocations,
)
from continues.services.rendering import HandoffMode

__all__ = [
    'anthropic_messages',
    'extract_claude_context',
    'first_user_text',
    'message_of',
    'parse_claude_sessions',
    'sessions_root',
]

HEAD_LINES: Final = 50
MIN_SESSION_BYTES: Final = 200


def sessions_root() -> Path:
    return Path.home() / '.claude' / 'projects'


def _is_session_file(path: Path) -> bool:
    return path.suffix == '.jsonl' and 'debug' not in path.name and bool(UUID_RE.match(path.stem))


def message_of(record: Any) -> Mapping[str, Any]:
    if isinstance(record, Mapping) and isinstance(record.get('message'), Mapping):
        return record['message']
    return {}


def first_user_text(content: Any) -> str:
    """Text of the first text block (or the whole string) of a user message."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, Mapping) and block.get('type') == 'text' and isinstance(block.get('text'), str):
                return block['text']
    return ''


# ==============================================================================
# Index metadata
# ==============================================================================


async def _parse_session_file(path: Path, logger: LoggerProtocol) -> UnifiedSession | None:
    session_id = cwd = branch = first_user = ''
    first_timestamp = None
    for record in await scan_jsonl_head(path, HEAD_LINES, logger):
        if not isinstance(record, Mapping):
            continue
        session_id = session_id or str(record.get('sessionId') or '')
        cwd = cwd or str(record.get('cwd') or '')
        branch = branch or str(record.get('gitBranch') or '')
        first_timestamp = first_timestamp or parse_timestamp(record.get('timestamp'))
        if not first_user and record.get('type') == 'user':
            text = first_user_text(message_of(record).get('content'))
            if is_real_user_message(text):
                first_user = text

    lines, size = await asyncio.to_thread(file_stats, path)
    if size <= MIN_SESSION_BYTES:
        return None

    created_at, updated_at = file_times(path)
    try:
        return UnifiedSession(
            id=session_id or path.stem,
            source='claude',
            cwd=cwd,
            repo=extract_repo_from_cwd(cwd) or None,
            branch=branch or None,
            summary=clean_summary(first_user) or None,
            lines=lines,
            bytes=size,
            created_at=first_timestamp or created_at,
            updated_at=updated_at,
            original_path=str(path),
        )
    except pydantic.ValidationError as e:
        raise ParseError('claude', str(path), f'Invalid session metadata: {e}') from e


async def parse_claude_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """
    Index every Claude Code session on this machine.

    Sessions of 200 bytes or less hold no conversation and are dropped.
    """
    logger = logger or NullLogger()
    sessions: list[UnifiedSession] = []
    for path in find_files(sessions_root(), _is_session_file, '*.jsonl'):
        try:
            session = await _parse_session_file(path, logger)
        except (OSError, ParseError) as e:
            await logger.debug(f'Skipping Claude session {path}: {e}')
            continue
        if session is not None:
            sessions.append(session)
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Context extraction
# ==============================================================================


def anthropic_messages(records: Sequence[Any], *, clean_user_text: bool = False) -> list[ConversationMessage]:
    """
    Conversation messages from Anthropic-style records.

    Compact summaries, meta records and injected system content are skipped.
    """
    messages: list[ConversationMessage] = []
    for record in records:
        if not isinstance(record, Mapping) or record.get('isCompactSummary') or record.get('isMeta'):
            continue
        message = message_of(record)
        role = record.get('type') or record.get('role') or message.get('role')
        if role not in ('user', 'assistant'):
            continue
        text = extract_text_from_blocks(message.get('content')).strip()
        if role == 'user' and clean_user_text:
            text = clean_user_query_text(text)
        if not text or (role == 'user' and is_system_content(text)):
            continue
        messages.append(
            ConversationMessage(role=role, content=text, timestamp=parse_timestamp(record.get('timestamp')))
        )
    return messages


def _pending_todos(records: Sequence[Any]) -> list[str]:
    """Open items from the last TodoWrite call."""
    todos: list[Any] = []
    for record in records:
        content = message_of(record).get('content')
        if not isinstance(content, list):
            continue
        for block in content:
            if (
                isinstance(block, Mapping)
                and block.get('type') == 'tool_use'
                and block.get('name') == 'TodoWrite'
                and isinstance(block.get('input'), Mapping)
            ):
                todos = block['input'].get('todos') or []
    return [
        str(todo.get('content'))
        for todo in todos
        if isinstance(todo, Mapping) and todo.get('content') and todo.get('status') in ('pending', 'in_progress')
    ]


def _session_notes(records: Sequence[Any], contents: list[Any]) -> SessionNotes:
    model = None
    input_tokens = output_tokens = cache_creation = cache_read = 0
    for record in records:
        message = message_of(record)
        model = model or message.get('model') or (record.get('model') if isinstance(record, Mapping) else None)
        usage = message.get('usage')
        if isinstance(usage, Mapping):
            input_tokens += int(usage.get('input_tokens') or 0)
            output_tokens += int(usage.get('output_tokens') or 0)
            cache_creation += int(usage.get('cache_creation_input_tokens') or 0)
            cache_read += int(usage.get('cache_read_input_tokens') or 0)

    return SessionNotes(
        model=str(model) if model else None,
        token_usage=TokenUsage(input=input_tokens, output=output_tokens) if input_tokens or output_tokens else None,
        cache_tokens=CacheTokens(creation=cache_creation, read=cache_read) if cache_creation or cache_read else None,
        reasoning=extract_thinking_highlights(contents),
    )


async def extract_claude_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages, tool activity and notes from a Claude Code session."""
    records = await read_jsonl(Path(session.original_path), logger)
    contents = [message_of(record).get('content') for record in records]

    invocations, results = invocations_from_content_blocks(contents)
    activity = summarize_invocations(invocations, build_result_lookup(results))

    return build_context(
        session,
        anthropic_messages(records),
        activity,
        _pending_todos(records),
        _session_notes(records, contents),
        mode,
    )
