"""
Gemini CLI session reader.

Sessions live at ~/.gemini/tmp/<project-hash>/chats/session-*.json, one JSON
document per session. Gemini does not record the working directory, so
sessions are indexed with an empty cwd.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Final, Literal

import pydantic

from continues.exceptions import ParseError
from continues.parsers.content import clean_summary, extract_text_from_blocks
from continues.parsers.helpers import MAX_PENDING_TASKS, build_context, find_files
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.invocations import ToolInvocation
from continues.schemas.samples import DiffStats
from continues.schemas.session import (
    CacheTokens,
    ConversationMessage,
    SessionContext,
    SessionNotes,
    TokenUsage,
    UnifiedSession,
)
from continues.services.extraction import MAX_REASONING_HIGHLIGHTS, summarize_invocations
from continues.services.rendering import HandoffMode
from continues.services.summarizer import truncate
from continues.types import JsonDatetime

__all__ = [
    'GeminiSession',
    'extract_gemini_context',
    'load_gemini_session',
    'parse_gemini_sessions',
    'sessions_root',
]

_OK_STATUSES: Final = frozenset({'ok', 'success', 'completed'})
_TASK_MARKERS: Final = ('todo', 'next', 'remaining', 'need to')


def sessions_root() -> Path:
    return Path.home() / '.gemini' / 'tmp'


# ==============================================================================
# Session file models (lenient: Gemini adds fields between releases)
# ==============================================================================


class _GeminiModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra='ignore', frozen=True)


class GeminiDiffStat(_GeminiModel):
    model_added_lines: int = 0
    model_removed_lines: int = 0


class GeminiResultDisplay(_GeminiModel):
    fileDiff: str | None = None
    fileName: str | None = None
    filePath: str | None = None
    isNewFile: bool | None = None
    diffStat: GeminiDiffStat | None = None


class GeminiToolCall(_GeminiModel):
    id: str | None = None
    name: str
    args: dict[str, Any] = pydantic.Field(default_factory=dict)
    result: list[Any] | None = None
    resultDisplay: GeminiResultDisplay | str | None = None
    status: str | None = None

    def output_text(self) -> str | None:
        """``result[0].functionResponse.response.output`` when present."""
        if not self.result or not isinstance(self.result[0], dict):
            return None
        response = self.result[0].get('functionResponse', {}).get('response', {})
        output = response.get('output') if isinstance(response, dict) else None
        if output is None:
            return None
        return output if isinstance(output, str) else json.dumps(output)


class GeminiThought(_GeminiModel):
    subject: str | None = None
    description: str | None = None


class GeminiTokens(_GeminiModel):
    input: int = 0
    output: int = 0
    cached: int = 0
    thoughts: int = 0


class GeminiMessage(_GeminiModel):
    id: str | None = None
    timestamp: JsonDatetime | None = None
    type: Literal['user', 'gemini', 'info', 'error', 'warning']
    content: str | list[Any] = ''
    toolCalls: list[GeminiToolCall] = pydantic.Field(default_factory=list)
    thoughts: list[GeminiThought] = pydantic.Field(default_factory=list)
    tokens: GeminiTokens | None = None
    model: str | None = None


class GeminiSession(_GeminiModel):
    sessionId: str
    projectHash: str | None = None
    startTime: JsonDatetime
    lastUpdated: JsonDatetime
    messages: list[GeminiMessage] = pydantic.Field(default_factory=list)


def load_gemini_session(path: Path) -> GeminiSession:
    """
    Read and validate one session file.

    Raises:
        ParseError: If the file is unreadable or doesn't match the session shape
    """
    try:
        return GeminiSession.model_validate_json(path.read_bytes())
    except (OSError, pydantic.ValidationError) as e:
        raise ParseError('gemini', str(path), f'Invalid session file: {e}') from e


def _session_files() -> list[Path]:
    root = sessions_root()
    if not root.is_dir():
        return []
    files: list[Path] = []
    for project_dir in sorted(root.iterdir()):
        chats = project_dir / 'chats'
        if project_dir.name == 'bin' or not chats.is_dir():
            continue
        files.extend(sorted(chats.glob('session-*.json')))
    return files


# ==============================================================================
# Index metadata
# ==============================================================================


def _first_user_text(data: GeminiSession) -> str:
    for message in data.messages:
        if message.type == 'user' and message.content:
            return extract_text_from_blocks(message.content)
    return ''


async def parse_gemini_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """
    Index every Gemini chat session.

    Sessions without a user message (auth flows, aborted starts) are dropped.
    """
    logger = logger or NullLogger()
    sessions: list[UnifiedSession] = []
    for path in _session_files():
        try:
            data = await asyncio.to_thread(load_gemini_session, path)
            raw = await asyncio.to_thread(path.read_bytes)
        except (OSError, ParseError) as e:
            await logger.debug(f'Skipping Gemini session {path}: {e}')
            continue

        summary = clean_summary(_first_user_text(data))
        if not summary:
            continue
        sessions.append(
            UnifiedSession(
                id=data.sessionId,
                source='gemini',
                cwd='',
                summary=summary,
                lines=raw.count(b'\n') + 1,
                bytes=len(raw),
                created_at=data.startTime,
                updated_at=data.lastUpdated,
                original_path=str(path),
            )
        )
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Context extraction
# ==============================================================================


def _invocation(call: GeminiToolCall) -> ToolInvocation:
    arguments = dict(call.args)
    display = call.resultDisplay if isinstance(call.resultDisplay, GeminiResultDisplay) else None
    if display and display.filePath and not any(key in arguments for key in ('file_path', 'path', 'absolute_path')):
        arguments['file_path'] = display.filePath

    diff_stats = None
    if display and display.diffStat:
        diff_stats = DiffStats(added=display.diffStat.model_added_lines, removed=display.diffStat.model_removed_lines)

    return ToolInvocation(
        name=call.name,
        arguments=arguments,
        call_id=call.id,
        result=call.output_text(),
        is_error=bool(call.status) and call.status.lower() not in _OK_STATUSES,
        file_diff=display.fileDiff if display and display.fileDiff else None,
        diff_stats=diff_stats,
        is_new_file=display.isNewFile if display else None,
    )


def _session_notes(data: GeminiSession) -> SessionNotes:
    model = None
    input_tokens = output_tokens = cached = thoughts = 0
    has_tokens = False
    reasoning: list[str] = []
    for message in data.messages:
        if message.type != 'gemini':
            continue
        model = model or message.model
        if message.tokens:
            has_tokens = True
            input_tokens += message.tokens.input
            output_tokens += message.tokens.output
            cached += message.tokens.cached
            thoughts += message.tokens.thoughts
        for thought in message.thoughts:
            text = thought.description or thought.subject or ''
            if len(reasoning) < MAX_REASONING_HIGHLIGHTS and len(text) > 10:
                reasoning.append(truncate(text, 200))

    return SessionNotes(
        model=model,
        token_usage=TokenUsage(input=input_tokens, output=output_tokens) if has_tokens else None,
        cache_tokens=CacheTokens(read=cached) if cached else None,
        thinking_tokens=thoughts or None,
        reasoning=reasoning,
    )


def _pending_tasks(data: GeminiSession) -> list[str]:
    """Thoughts that read like follow-ups (todo, next, remaining, need to)."""
    tasks: list[str] = []
    for message in data.messages:
        for thought in message.thoughts if message.type == 'gemini' else []:
            subject = (thought.subject or '').lower()
            description = (thought.description or '').lower()
            mentions_task = any(marker in subject for marker in _TASK_MARKERS)
            if (mentions_task or 'need to' in description or 'next step' in description) and (
                text := thought.subject or thought.description
            ):
                tasks.append(text)
    return tasks[-MAX_PENDING_TASKS:]


def gemini_messages(data: GeminiSession) -> list[ConversationMessage]:
    messages: list[ConversationMessage] = []
    for message in data.messages:
        if message.type not in ('user', 'gemini'):
            continue
        text = extract_text_from_blocks(message.content).strip()
        if text:
            role: Literal['user', 'assistant'] = 'user' if message.type == 'user' else 'assistant'
            messages.append(ConversationMessage(role=role, content=text, timestamp=message.timestamp))
    return messages


async def extract_gemini_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages, tool activity, notes and follow-up thoughts from a Gemini session."""
    data = load_gemini_session(Path(session.original_path))
    invocations = [
        _invocation(call) for message in data.messages if message.type == 'gemini' for call in message.toolCalls
    ]
    activity = summarize_invocations(invocations)
    notes = _session_notes(data)
    if notes.model and not session.model:
        session = session.model_copy(update={'model': notes.model})
    return build_context(session, gemini_messages(data), activity, _pending_tasks(data), notes, mode)
