"""
OpenCode session reader.

Newer OpenCode releases keep everything in ~/.local/share/opencode/opencode.db
(tables ``session``, ``message``, ``part`` and ``project``; message and part
payloads are JSON in a ``data`` column). Older releases use a JSON tree under
``storage/``:

    storage/session/<project>/ses_*.json
    storage/message/<session-id>/msg_*.json
    storage/part/<message-id>/prt_*.json

The database is read first; the JSON tree is the fallback when the database
is missing, unreadable or empty.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import attrs

from continues.parsers.content import clean_summary, extract_repo_from_cwd
from continues.parsers.helpers import build_context, parse_timestamp
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.invocations import ToolInvocation
from continues.schemas.session import ConversationMessage, SessionContext, SessionNotes, UnifiedSession
from continues.services.extraction import summarize_invocations
from continues.services.rendering import HandoffMode

__all__ = [
    'OpenCodeMessage',
    'extract_opencode_context',
    'parse_opencode_sessions',
    'sessions_root',
]

MAX_SUMMARY_CHARS: Final = 60
_UNTITLED_PREFIX: Final = 'New session'


def sessions_root() -> Path:
    return Path.home() / '.local' / 'share' / 'opencode'


def db_path() -> Path:
    return sessions_root() / 'opencode.db'


def storage_dir() -> Path:
    return sessions_root() / 'storage'


@attrs.define(frozen=True)
class OpenCodeMessage:
    """One stored message with its parts, in storage order."""

    id: str
    role: str
    created: Any
    parts: Sequence[Mapping[str, Any]]
    model: str | None = None


def _loads(raw: Any) -> Mapping[str, Any]:
    try:
        data = json.loads(raw) if isinstance(raw, str | bytes) else raw
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, Mapping) else {}


def _read_json(path: Path) -> Mapping[str, Any]:
    try:
        return _loads(path.read_text(encoding='utf-8'))
    except OSError:
        return {}


def _first_text(parts: Sequence[Mapping[str, Any]]) -> str:
    for part in parts:
        if part.get('type') == 'text' and isinstance(part.get('text'), str) and part['text']:
            return part['text']
    return ''


def _summary(title: str, first_user: str, slug: str) -> str | None:
    summary = title if title and not title.startswith(_UNTITLED_PREFIX) else clean_summary(first_user)
    return summary[:MAX_SUMMARY_CHARS] or slug or None


# ==============================================================================
# SQLite storage
# ==============================================================================


@contextlib.contextmanager
def _connect(path: Path) -> Iterator[sqlite3.Connection]:
    """Read-only connection; the database belongs to a possibly running OpenCode."""
    connection = sqlite3.connect(f'file:{path}?mode=ro', uri=True)
    try:
        yield connection
    finally:
        connection.close()


def _sqlite_sessions(path: Path) -> list[UnifiedSession]:
    with _connect(path) as db:
        projects = dict(db.execute('SELECT id, worktree FROM project').fetchall())
        rows = db.execute(
            'SELECT id, project_id, slug, directory, title, time_created, time_updated '
            'FROM session ORDER BY time_updated DESC'
        ).fetchall()

        sessions: list[UnifiedSession] = []
        for session_id, project_id, slug, directory, title, created, updated in rows:
            cwd = directory or projects.get(project_id) or ''
            (count,) = db.execute('SELECT COUNT(*) FROM message WHERE session_id = ?', (session_id,)).fetchone()

            first_user = ''
            if not title or title.startswith(_UNTITLED_PREFIX):
                messages = _sqlite_messages(db, session_id)
                first_user = _first_text([part for m in messages if m.role == 'user' for part in m.parts])

            created_at = parse_timestamp(created)
            updated_at = parse_timestamp(updated) or created_at
            if created_at is None or updated_at is None:
                continue
            sessions.append(
                UnifiedSession(
                    id=session_id,
                    source='opencode',
                    cwd=cwd,
                    repo=extract_repo_from_cwd(cwd) or None,
                    summary=_summary(title or '', first_user, slug or ''),
                    lines=count,
                    bytes=0,
                    created_at=created_at,
                    updated_at=updated_at,
                    original_path=str(path),
                )
            )
    return sessions


def _sqlite_messages(db: sqlite3.Connection, session_id: str) -> list[OpenCodeMessage]:
    messages: list[OpenCodeMessage] = []
    rows = db.execute(
        'SELECT id, time_created, data FROM message WHERE session_id = ? ORDER BY time_created ASC', (session_id,)
    ).fetchall()
    for message_id, created, raw in rows:
        data = _loads(raw)
        parts = [
            _loads(part_raw)
            for (part_raw,) in db.execute(
                'SELECT data FROM part WHERE message_id = ? ORDER BY time_created ASC', (message_id,)
            ).fetchall()
        ]
        messages.append(
            OpenCodeMessage(
                id=message_id,
                role=str(data.get('role') or 'assistant'),
                created=created,
                parts=parts,
                model=data.get('modelID'),
            )
        )
    return messages


# ==============================================================================
# JSON storage (legacy)
# ==============================================================================


def _json_messages(session_id: str) -> list[OpenCodeMessage]:
    message_dir = storage_dir() / 'message' / session_id
    if not message_dir.is_dir():
        return []

    messages: list[OpenCodeMessage] = []
    for message_file in sorted(message_dir.glob('msg_*.json')):
        data = _read_json(message_file)
        if not data.get('id'):
            continue
        part_dir = storage_dir() / 'part' / str(data['id'])
        parts = [_read_json(part_file) for part_file in sorted(part_dir.glob('prt_*.json'))]
        time = data.get('time')
        messages.append(
            OpenCodeMessage(
                id=str(data['id']),
                role=str(data.get('role') or 'assistant'),
                created=time.get('created') if isinstance(time, Mapping) else None,
                parts=parts,
                model=data.get('modelID'),
            )
        )
    return messages


def _json_session(path: Path) -> UnifiedSession | None:
    data = _read_json(path)
    if not data.get('id'):
        return None
    session_id = str(data['id'])

    project = _read_json(storage_dir() / 'project' / f'{data.get("projectID")}.json')
    cwd = str(data.get('directory') or project.get('worktree') or '')
    messages = _json_messages(session_id)
    first_user = _first_text([part for message in messages if message.role == 'user' for part in message.parts])

    time = data.get('time') if isinstance(data.get('time'), Mapping) else {}
    created_at = parse_timestamp(time.get('created'))
    updated_at = parse_timestamp(time.get('updated')) or created_at
    if created_at is None or updated_at is None:
        return None
    return UnifiedSession(
        id=session_id,
        source='opencode',
        cwd=cwd,
        repo=extract_repo_from_cwd(cwd) or None,
        summary=_summary(str(data.get('title') or ''), first_user, str(data.get('slug') or '')),
        lines=len(messages),
        bytes=path.stat().st_size,
        created_at=created_at,
        updated_at=updated_at,
        original_path=str(path),
    )


def _json_sessions() -> list[UnifiedSession]:
    session_root = storage_dir() / 'session'
    if not session_root.is_dir():
        return []
    sessions: list[UnifiedSession] = []
    for path in sorted(session_root.glob('*/ses_*.json')):
        if session := _json_session(path):
            sessions.append(session)
    return sessions


# ==============================================================================
# Index metadata
# ==============================================================================


async def parse_opencode_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """Index OpenCode sessions from the database, falling back to the JSON tree."""
    logger = logger or NullLogger()
    sessions: list[UnifiedSession] = []
    if db_path().is_file():
        try:
            sessions = await asyncio.to_thread(_sqlite_sessions, db_path())
        except sqlite3.Error as e:
            await logger.debug(f'OpenCode database unreadable, using JSON storage: {e}')
    if not sessions:
        try:
            sessions = await asyncio.to_thread(_json_sessions)
        except OSError as e:
            await logger.debug(f'Skipping OpenCode JSON storage: {e}')
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


# ==============================================================================
# Context extraction
# ==============================================================================


async def _load_messages(session_id: str, logger: LoggerProtocol) -> list[OpenCodeMessage]:
    if db_path().is_file():
        try:
            with _connect(db_path()) as db:
                messages = _sqlite_messages(db, session_id)
        except sqlite3.Error as e:
            await logger.debug(f'OpenCode database unreadable, using JSON storage: {e}')
        else:
            if messages:
                return messages
    return _json_messages(session_id)


def _invocation(part: Mapping[str, Any]) -> ToolInvocation | None:
    """A ``tool`` part: ``{tool, callID, state: {status, input, output, error}}``."""
    name = part.get('tool')
    if not isinstance(name, str) or not name:
        return None
    state = part.get('state') if isinstance(part.get('state'), Mapping) else {}
    arguments = state.get('input')
    is_error = state.get('status') == 'error'
    result = state.get('error') if is_error else state.get('output')
    call_id = part.get('callID')
    return ToolInvocation(
        name=name,
        arguments=dict(arguments) if isinstance(arguments, Mapping) else {},
        call_id=str(call_id) if call_id else None,
        result=result if isinstance(result, str) else (json.dumps(result) if result is not None else None),
        is_error=is_error,
    )


def opencode_messages(messages: Sequence[OpenCodeMessage]) -> list[ConversationMessage]:
    conversation: list[ConversationMessage] = []
    for message in messages:
        text = '\n'.join(
            part['text'] for part in message.parts if part.get('type') == 'text' and isinstance(part.get('text'), str)
        ).strip()
        if text:
            conversation.append(
                ConversationMessage(
                    role='user' if message.role == 'user' else 'assistant',
                    content=text,
                    timestamp=parse_timestamp(message.created),
                )
            )
    return conversation


async def extract_opencode_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages and tool activity from an OpenCode session."""
    logger = logger or NullLogger()
    messages = await _load_messages(session.id, logger)
    invocations = [
        invocation
        for message in messages
        for part in message.parts
        if part.get('type') == 'tool' and (invocation := _invocation(part))
    ]
    activity = summarize_invocations(invocations)
    model = next((message.model for message in reversed(messages) if message.model), None)
    notes = SessionNotes(model=str(model)) if model else None
    if model and not session.model:
        session = session.model_copy(update={'model': str(model)})
    return build_context(session, opencode_messages(messages), activity, notes=notes, mode=mode)
