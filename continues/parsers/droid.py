"""
Factory Droid session reader.

Sessions live at ~/.factory/sessions/<workspace-slug>/<uuid>.jsonl with a
``<uuid>.settings.json`` companion holding the model and token usage. Events
are ``session_start``, ``message`` (Anthropic-style blocks) and ``todo_state``.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

from continues.parsers.claude import first_user_text
from continues.parsers.content import (
    clean_summary,
    extract_repo_from_cwd,
    extract_text_from_blocks,
    is_real_user_message,
    is_system_content,
)
from continues.parsers.helpers import MAX_PENDING_TASKS, build_context, file_times, parse_timestamp
from continues.parsers.jsonl import file_stats, read_jsonl, scan_jsonl_head
from continues.paths import cwd_from_slug
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

__all__ = ['extract_droid_context', 'parse_droid_sessions', 'pending_tasks_from_todos', 'sessions_root']

HEAD_LINES: Final = 100

_TODO_LINE_RE: Final = re.compile(r'^\d+\.\s*\[(?:in_progress|pending)\]\s+(.+)')


def sessions_root() -> Path:
    return Path.home() / '.factory' / 'sessions'


def _settings_path(session_path: Path) -> Path:
    return session_path.with_name(session_path.stem + '.settings.json')


async def _read_settings(session_path: Path, logger: LoggerProtocol) -> Mapping[str, Any]:
    path = _settings_path(session_path)
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        await logger.debug(f'Ignoring unreadable Droid settings {path}: {e}')
        return {}
    return data if isinstance(data, Mapping) else {}


def _message_events(events: Sequence[Any]) -> list[Mapping[str, Any]]:
    return [
        event
        for event in events
        if isinstance(event, Mapping) and event.get('type') == 'message' and isinstance(event.get('message'), Mapping)
    ]


# ==============================================================================
# Index metadata
# ==============================================================================


async def _parse_session_file(path: Path, logger: LoggerProtocol) -> UnifiedSession | None:
    start: Mapping[str, Any] | None = None
    first_user = ''
    first_timestamp = last_timestamp = None
    for event in await scan_jsonl_head(path, HEAD_LINES, logger):
        if not isinstance(event, Mapping):
            continue
        if event.get('type') == 'session_start' and start is None:
            start = event
        elif event.get('type') == 'message' and isinstance(event.get('message'), Mapping):
            if timestamp := parse_timestamp(event.get('timestamp')):
                first_timestamp = first_timestamp or timestamp
                last_timestamp = timestamp
            message = event['message']
            if not first_user and message.get('role') == 'user':
                text = first_user_text(message.get('content'))
                if is_real_user_message(text):
                    first_user = text

    if start is None or not start.get('id'):
        return None
    lines, size = await asyncio.to_thread(file_stats, path)
    if lines <= 1:
        return None

    settings = await _read_settings(path, logger)
    created_at, updated_at = file_times(path)
    cwd = str(start.get('cwd') or '') or cwd_from_slug(path.parent.name)
    return UnifiedSession(
        id=str(start['id']),
        source='droid',
        cwd=cwd,
        repo=extract_repo_from_cwd(cwd) or None,
        summary=clean_summary(first_user) or str(start.get('sessionTitle') or '') or None,
        lines=lines,
        bytes=size,
        created_at=first_timestamp or created_at,
        updated_at=last_timestamp or updated_at,
        original_path=str(path),
        model=str(settings.get('model') or '') or None,
    )


async def parse_droid_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """Index every Droid session that starts with a ``session_start`` event."""
    logger = logger or NullLogger()
    root = sessions_root()
    if not root.is_dir():
        return []

    sessions: list[UnifiedSession] = []
    for workspace in sorted(root.iterdir()):
        if not workspace.is_dir():
            continue
        for path in sorted(workspace.glob('*.jsonl')):
            try:
                session = await _parse_session_file(path, logger)
            except OSError as e:
                await logger.debug(f'Skipping Droid session {path}: {e}')
                continue
            if session is not None:
                sessions.append(session)
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Context extraction
# ==============================================================================


def pending_tasks_from_todos(events: Sequence[Any]) -> list[str]:
    """Open items (``N. [pending|in_progress] text``) from the last ``todo_state`` event."""
    last: Mapping[str, Any] | None = None
    for event in events:
        if isinstance(event, Mapping) and event.get('type') == 'todo_state':
            last = event
    if last is None:
        return []

    todos = last.get('todos')
    if isinstance(todos, Mapping):
        todos = todos.get('todos')
    if not isinstance(todos, str):
        return []

    tasks = [match.group(1).strip() for line in todos.split('\n') if (match := _TODO_LINE_RE.match(line))]
    return tasks[:MAX_PENDING_TASKS]


def _session_notes(settings: Mapping[str, Any], contents: list[Any]) -> SessionNotes:
    usage = settings.get('tokenUsage')
    token_usage = cache_tokens = thinking_tokens = None
    if isinstance(usage, Mapping):
        token_usage = TokenUsage(input=int(usage.get('inputTokens') or 0), output=int(usage.get('outputTokens') or 0))
        creation = int(usage.get('cacheCreationTokens') or 0)
        read = int(usage.get('cacheReadTokens') or 0)
        cache_tokens = CacheTokens(creation=creation, read=read) if creation or read else None
        thinking_tokens = int(usage.get('thinkingTokens') or 0) or None
    return SessionNotes(
        model=str(settings.get('model') or '') or None,
        token_usage=token_usage,
        cache_tokens=cache_tokens,
        thinking_tokens=thinking_tokens,
        reasoning=extract_thinking_highlights(contents),
    )


def droid_messages(events: Sequence[Any]) -> list[ConversationMessage]:
    messages: list[ConversationMessage] = []
    for event in _message_events(events):
        message = event['message']
        content = message.get('content')
        blocks = content if isinstance(content, list) else [{'type': 'text', 'text': content}]
        text = '\n'.join(
            part for block in blocks if (part := extract_text_from_blocks([block])) and not is_system_content(part)
        ).strip()
        if text:
            messages.append(
                ConversationMessage(
                    role='user' if message.get('role') == 'user' else 'assistant',
                    content=text,
                    timestamp=parse_timestamp(event.get('timestamp')),
                )
            )
    return messages


async def extract_droid_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages, tool activity, notes and open todos from a Droid session."""
    logger = logger or NullLogger()
    path = Path(session.original_path)
    events = await read_jsonl(path, logger)
    settings = await _read_settings(path, logger)
    contents = [event['message'].get('content') for event in _message_events(events)]

    invocations, results = invocations_from_content_blocks(contents)
    activity = summarize_invocations(invocations, build_result_lookup(results))
    notes = _session_notes(settings, contents)
    if notes.model and not session.model:
        session = session.model_copy(update={'model': notes.model})
    return build_context(session, droid_messages(events), activity, pending_tasks_from_todos(events), notes, mode)
