"""
Codex CLI session reader.

Rollouts live at ~/.codex/sessions/YYYY/MM/DD/rollout-YYYY-MM-DDTHH-MM-SS-<id>.jsonl.
Each line is ``{"timestamp", "type", "payload"}`` where type is one of
``session_meta``, ``turn_context``, ``response_item`` or ``event_msg``.

The same conversation turn is usually logged twice (as a ``response_item``
message and as an ``event_msg``); response items are preferred when present.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

from continues.parsers.content import clean_summary, extract_repo, is_system_content
from continues.parsers.helpers import build_context, file_times, find_files, parse_timestamp
from continues.parsers.jsonl import file_stats, read_jsonl, scan_jsonl_head
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.invocations import ToolInvocation, ToolResult
from continues.schemas.session import (
    CacheTokens,
    ConversationMessage,
    MessageRole,
    SessionContext,
    SessionNotes,
    TokenUsage,
    UnifiedSession,
)
from continues.services.extraction import (
    MAX_REASONING_HIGHLIGHTS,
    build_result_lookup,
    first_sentence,
    summarize_invocations,
)
from continues.services.rendering import HandoffMode

__all__ = ['extract_codex_context', 'parse_codex_sessions', 'parse_rollout_filename', 'sessions_root']

HEAD_LINES: Final = 150

_ROLLOUT_RE: Final = re.compile(r'^rollout-(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})-(\d{2})-(.+)\.jsonl$')


def sessions_root() -> Path:
    return Path.home() / '.codex' / 'sessions'


def parse_rollout_filename(filename: str) -> tuple[datetime, str] | None:
    """(start time, session ID) from a rollout filename; None if it doesn't match."""
    match = _ROLLOUT_RE.match(filename)
    if not match:
        return None
    year, month, day, hour, minute, second, session_id = match.groups()
    try:
        started = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), tzinfo=UTC)
    except ValueError:
        return None
    return started, session_id


def _payload(record: Any) -> Mapping[str, Any]:
    if isinstance(record, Mapping) and isinstance(record.get('payload'), Mapping):
        return record['payload']
    return {}


# ==============================================================================
# Index metadata
# ==============================================================================


async def parse_codex_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """Index every Codex rollout file."""
    logger = logger or NullLogger()
    sessions: list[UnifiedSession] = []
    for path in find_files(sessions_root(), lambda p: p.name.startswith('rollout-'), '*.jsonl'):
        parsed = parse_rollout_filename(path.name)
        if parsed is None:
            continue
        started, file_id = parsed
        try:
            head = await scan_jsonl_head(path, HEAD_LINES, logger)
            lines, size = await asyncio.to_thread(file_stats, path)
            _, updated_at = file_times(path)
        except OSError as e:
            await logger.debug(f'Skipping Codex rollout {path}: {e}')
            continue

        meta: Mapping[str, Any] = {}
        first_user = ''
        for record in head:
            if not isinstance(record, Mapping):
                continue
            payload = _payload(record)
            if not meta and record.get('type') == 'session_meta':
                meta = payload
            if not first_user and record.get('type') == 'event_msg' and payload.get('type') == 'user_message':
                first_user = str(payload.get('message') or '')

        cwd = str(meta.get('cwd') or '')
        git = meta.get('git') if isinstance(meta.get('git'), Mapping) else {}
        sessions.append(
            UnifiedSession(
                id=file_id,
                source='codex',
                cwd=cwd,
                repo=extract_repo(git.get('repository_url'), cwd) or None,
                branch=str(git.get('branch') or '') or None,
                summary=clean_summary(first_user) or None,
                lines=lines,
                bytes=size,
                created_at=started,
                updated_at=updated_at,
                original_path=str(path),
            )
        )
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Tool calls
# ==============================================================================


def _output_text(output: Any) -> str:
    """
    Flatten a function_call_output payload to text.

    Newer rollouts store ``{"output": ..., "metadata": {"exit_code": N}}`` as a
    JSON string; the exit code is restated in the text so it can be parsed back.
    """
    if isinstance(output, str):
        try:
            decoded = json.loads(output)
        except json.JSONDecodeError:
            return output
        if not isinstance(decoded, Mapping):
            return output
        output = decoded
    if isinstance(output, Mapping):
        text = str(output.get('output') or '')
        metadata = output.get('metadata')
        if isinstance(metadata, Mapping) and isinstance(metadata.get('exit_code'), int):
            return f'Exit code: {metadata["exit_code"]}\n{text}'
        return text or json.dumps(output)
    return json.dumps(output, default=str)


def _arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str) and raw:
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return {'input': raw}
        return dict(decoded) if isinstance(decoded, Mapping) else {}
    return {}


def codex_tool_records(records: Sequence[Any]) -> tuple[list[ToolInvocation], list[ToolResult]]:
    """Invocations and results from a rollout's ``response_item`` records."""
    invocations: list[ToolInvocation] = []
    results: list[ToolResult] = []
    for record in records:
        if not isinstance(record, Mapping) or record.get('type') != 'response_item':
            continue
        payload = _payload(record)
        item_type = payload.get('type')
        call_id = payload.get('call_id') if isinstance(payload.get('call_id'), str) else None

        if item_type in ('function_call_output', 'custom_tool_call_output') and call_id:
            text = _output_text(payload.get('output'))
            if text:
                results.append(ToolResult(call_id=call_id, text=text))
        elif item_type == 'function_call' and payload.get('name'):
            arguments = _arguments(payload.get('arguments'))
            invocations.append(ToolInvocation(name=str(payload['name']), arguments=arguments, call_id=call_id))
        elif item_type == 'custom_tool_call' and payload.get('name'):
            arguments = {'input': str(payload.get('input') or '')}
            invocations.append(ToolInvocation(name=str(payload['name']), arguments=arguments, call_id=call_id))
        elif item_type == 'web_search_call':
            action = payload.get('action') if isinstance(payload.get('action'), Mapping) else {}
            queries = action.get('queries') or ['']
            query = str(action.get('query') or queries[0] or '')
            invocations.append(ToolInvocation(name='web_search_call', arguments={'query': query}))
    return invocations, results


# ==============================================================================
# Notes and messages
# ==============================================================================


def _token_usage(payload: Mapping[str, Any]) -> tuple[TokenUsage, CacheTokens | None, int | None] | None:
    info = payload.get('info')
    usage = info.get('total_token_usage') if isinstance(info, Mapping) else payload
    if not isinstance(usage, Mapping):
        return None
    cached = int(usage.get('cached_input_tokens') or 0)
    reasoning = usage.get('reasoning_output_tokens')
    return (
        TokenUsage(input=int(usage.get('input_tokens') or 0), output=int(usage.get('output_tokens') or 0)),
        CacheTokens(read=cached) if cached else None,
        int(reasoning) if reasoning else None,
    )


def _session_notes(records: Sequence[Any]) -> SessionNotes:
    model = None
    reasoning: list[str] = []
    usage = None
    for record in records:
        if not isinstance(record, Mapping):
            continue
        payload = _payload(record)
        if record.get('type') == 'turn_context':
            model = model or payload.get('model')
        elif record.get('type') == 'event_msg':
            if payload.get('type') == 'agent_reasoning' and len(reasoning) < MAX_REASONING_HIGHLIGHTS:
                if highlight := first_sentence(str(payload.get('text') or payload.get('message') or '')):
                    reasoning.append(highlight)
            elif payload.get('type') == 'token_count':
                # Cumulative: the last event is the session total
                usage = _token_usage(payload) or usage

    token_usage, cache_tokens, thinking_tokens = usage or (None, None, None)
    return SessionNotes(
        model=str(model) if model else None,
        token_usage=token_usage,
        cache_tokens=cache_tokens,
        thinking_tokens=thinking_tokens,
        reasoning=reasoning,
    )


def _content_text(parts: Any, types: tuple[str, ...]) -> str:
    if not isinstance(parts, list):
        return ''
    return '\n'.join(
        part['text']
        for part in parts
        if isinstance(part, Mapping)
        and part.get('type') in types
        and isinstance(part.get('text'), str)
        and part['text']
    )


def codex_messages(records: Sequence[Any]) -> list[ConversationMessage]:
    """Conversation messages, preferring response items over event messages."""
    from_events: list[ConversationMessage] = []
    from_items: list[ConversationMessage] = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        payload = _payload(record)
        timestamp = parse_timestamp(record.get('timestamp'))
        role: MessageRole | None = None
        text = ''
        target = from_events

        if record.get('type') == 'event_msg':
            if payload.get('type') == 'user_message':
                role, text = 'user', str(payload.get('message') or '')
            elif payload.get('type') in ('agent_message', 'assistant_message'):
                role, text = 'assistant', str(payload.get('message') or '')
        elif record.get('type') == 'response_item' and payload.get('type') == 'message':
            target = from_items
            if payload.get('role') == 'user':
                text = _content_text(payload.get('content'), ('input_text',))
                role = None if is_system_content(text) else 'user'
            elif payload.get('role') == 'assistant':
                role, text = 'assistant', _content_text(payload.get('content'), ('output_text', 'text'))

        if role is not None and text:
            target.append(ConversationMessage(role=role, content=text, timestamp=timestamp))
    return from_items or from_events


async def extract_codex_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages, tool activity and notes from a Codex rollout."""
    records = await read_jsonl(Path(session.original_path), logger)
    invocations, results = codex_tool_records(records)
    activity = summarize_invocations(invocations, build_result_lookup(results))
    return build_context(session, codex_messages(records), activity, notes=_session_notes(records), mode=mode)
