"""
GitHub Copilot CLI session reader.

Each session is a directory under ~/.copilot/session-state/ holding
``workspace.yaml`` (id, cwd, repository, branch, summary, timestamps) and
``events.jsonl`` (``session.start``, ``user.message``, ``assistant.message``
and ``tool.execution_complete`` events).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import yaml

from continues.exceptions import ParseError
from continues.parsers.helpers import build_context, parse_timestamp
from continues.parsers.jsonl import file_stats, read_jsonl, scan_jsonl_head
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.invocations import ToolInvocation, ToolResult
from continues.schemas.session import (
    ConversationMessage,
    SessionContext,
    SessionNotes,
    ToolCall,
    UnifiedSession,
)
from continues.services.extraction import build_result_lookup, summarize_invocations
from continues.services.rendering import HandoffMode

__all__ = ['extract_copilot_context', 'load_workspace', 'parse_copilot_sessions', 'sessions_root']

HEAD_LINES: Final = 50
MAX_SUMMARY_CHARS: Final = 60


def sessions_root() -> Path:
    return Path.home() / '.copilot' / 'session-state'


def _data(event: Any) -> Mapping[str, Any]:
    if isinstance(event, Mapping) and isinstance(event.get('data'), Mapping):
        return event['data']
    return {}


def load_workspace(path: Path) -> dict[str, Any]:
    """
    Load a session's workspace.yaml.

    Raises:
        ParseError: If the file is unreadable or not a mapping
    """
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        raise ParseError('copilot', str(path), f'Cannot read workspace: {e}') from e
    if not isinstance(data, dict) or not data.get('id'):
        raise ParseError('copilot', str(path), 'Workspace has no session id')
    return data


def _workspace_summary(raw: Any) -> str:
    """First line of the summary, unwrapping a YAML literal-block marker left in the text."""
    summary = str(raw or '').strip()
    if summary.startswith('|'):
        summary = summary[1:].lstrip('\n')
    return summary.split('\n', 1)[0][:MAX_SUMMARY_CHARS]


async def _start_model(events_path: Path, logger: LoggerProtocol) -> str | None:
    for event in await scan_jsonl_head(events_path, HEAD_LINES, logger):
        if isinstance(event, Mapping) and event.get('type') == 'session.start':
            model = _data(event).get('selectedModel')
            if model:
                return str(model)
    return None


async def _parse_session_dir(session_dir: Path, logger: LoggerProtocol) -> UnifiedSession | None:
    workspace = load_workspace(session_dir / 'workspace.yaml')
    events_path = session_dir / 'events.jsonl'
    if not events_path.is_file():
        return None
    lines, size = await asyncio.to_thread(file_stats, events_path)
    if size == 0:
        return None

    created_at = parse_timestamp(workspace.get('created_at'))
    updated_at = parse_timestamp(workspace.get('updated_at')) or created_at
    if created_at is None or updated_at is None:
        raise ParseError('copilot', str(session_dir), 'Workspace has no timestamps')

    return UnifiedSession(
        id=str(workspace['id']),
        source='copilot',
        cwd=str(workspace.get('cwd') or ''),
        repo=str(workspace.get('repository') or '') or None,
        branch=str(workspace.get('branch') or '') or None,
        summary=_workspace_summary(workspace.get('summary')) or None,
        lines=lines,
        bytes=size,
        created_at=created_at,
        updated_at=updated_at,
        original_path=str(session_dir),
        model=await _start_model(events_path, logger),
    )


async def parse_copilot_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """Index every Copilot session directory that has a workspace.yaml and events."""
    logger = logger or NullLogger()
    root = sessions_root()
    if not root.is_dir():
        return []

    sessions: list[UnifiedSession] = []
    for session_dir in sorted(root.iterdir()):
        if not (session_dir / 'workspace.yaml').is_file():
            continue
        try:
            session = await _parse_session_dir(session_dir, logger)
        except (OSError, ParseError) as e:
            await logger.debug(f'Skipping Copilot session {session_dir}: {e}')
            continue
        if session is not None:
            sessions.append(session)
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Context extraction
# ==============================================================================


def _tool_requests(data: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    requests = data.get('toolRequests')
    if not isinstance(requests, list):
        return []
    return [request for request in requests if isinstance(request, Mapping) and request.get('name')]


def _request_arguments(request: Mapping[str, Any]) -> dict[str, Any]:
    arguments = request.get('arguments')
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError:
            return {'input': arguments}
    return dict(arguments) if isinstance(arguments, Mapping) else {}


def copilot_messages(events: Sequence[Any]) -> list[ConversationMessage]:
    """User and assistant messages; tool-only turns get a ``[Used tools: ...]`` placeholder."""
    messages: list[ConversationMessage] = []
    for event in events:
        if not isinstance(event, Mapping):
            continue
        data = _data(event)
        timestamp = parse_timestamp(event.get('timestamp'))
        if event.get('type') == 'user.message':
            content = data.get('content') or data.get('transformedContent') or ''
            if content:
                messages.append(ConversationMessage(role='user', content=str(content), timestamp=timestamp))
        elif event.get('type') == 'assistant.message':
            content = data.get('content') or ''
            requests = _tool_requests(data)
            tool_calls = [
                ToolCall(name=str(request['name']), arguments=_request_arguments(request)) for request in requests
            ]
            if content:
                text = content if isinstance(content, str) else json.dumps(content)
            elif requests:
                text = f'[Used tools: {", ".join(str(request["name"]) for request in requests)}]'
            else:
                continue
            messages.append(
                ConversationMessage(role='assistant', content=text, timestamp=timestamp, tool_calls=tool_calls)
            )
    return messages


def copilot_tool_records(events: Sequence[Any]) -> tuple[list[ToolInvocation], list[ToolResult]]:
    """Tool requests from assistant messages, results from ``tool.execution_complete``."""
    invocations: list[ToolInvocation] = []
    results: list[ToolResult] = []
    for event in events:
        if not isinstance(event, Mapping):
            continue
        data = _data(event)
        if event.get('type') == 'assistant.message':
            for request in _tool_requests(data):
                call_id = request.get('toolCallId')
                invocations.append(
                    ToolInvocation(
                        name=str(request['name']),
                        arguments=_request_arguments(request),
                        call_id=str(call_id) if call_id else None,
                    )
                )
        elif event.get('type') == 'tool.execution_complete' and data.get('toolCallId'):
            result = data.get('result')
            text = result.get('content') if isinstance(result, Mapping) else result
            if text:
                results.append(
                    ToolResult(
                        call_id=str(data['toolCallId']),
                        text=text if isinstance(text, str) else json.dumps(text),
                        is_error=data.get('success') is False,
                    )
                )
    return invocations, results


async def extract_copilot_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages and tool activity from a Copilot session's events."""
    events = await read_jsonl(Path(session.original_path) / 'events.jsonl', logger)
    messages = copilot_messages(events)

    # Sessions whose events carry no conversation still have a workspace summary
    if not messages and session.summary:
        messages = [
            ConversationMessage(role='user', content=session.summary, timestamp=session.created_at),
            ConversationMessage(
                role='assistant', content=f'[Session worked on: {session.summary}]', timestamp=session.updated_at
            ),
        ]

    invocations, results = copilot_tool_records(events)
    activity = summarize_invocations(invocations, build_result_lookup(results))
    return build_context(session, messages, activity, notes=SessionNotes(model=session.model), mode=mode)
