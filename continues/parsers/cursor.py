"""
Cursor agent session reader.

Transcripts live at ~/.cursor/projects/<slug>/agent-transcripts/<uuid>/<uuid>.jsonl.
Each line is ``{"role": ..., "message": {"content": [blocks]}}`` with
Anthropic-style blocks; user text is wrapped in ``<user_query>`` tags. The
project directory is a lossy slug of the cwd.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from continues.parsers.claude import anthropic_messages, message_of
from continues.parsers.content import clean_summary, clean_user_query_text, extract_repo_from_cwd, is_real_user_message
from continues.parsers.helpers import build_context, file_times, find_files
from continues.parsers.jsonl import file_stats, read_jsonl, scan_jsonl_head
from continues.paths import cwd_from_slug
from continues.protocols import LoggerProtocol, NullLogger
from continues.schemas.session import SessionContext, SessionNotes, UnifiedSession
from continues.services.extraction import (
    build_result_lookup,
    extract_thinking_highlights,
    invocations_from_content_blocks,
    summarize_invocations,
)
from continues.services.rendering import HandoffMode

__all__ = ['extract_cursor_context', 'parse_cursor_sessions', 'sessions_root']

HEAD_LINES: Final = 50
MIN_SESSION_BYTES: Final = 100


def sessions_root() -> Path:
    return Path.home() / '.cursor' / 'projects'


def _transcript_files() -> list[Path]:
    root = sessions_root()
    if not root.is_dir():
        return []
    files: list[Path] = []
    for project_dir in sorted(root.iterdir()):
        transcripts = project_dir / 'agent-transcripts'
        files.extend(find_files(transcripts, lambda path: path.suffix == '.jsonl', '*.jsonl'))
    return files


def _project_slug(path: Path) -> str:
    """The <slug> directory: the parent of agent-transcripts."""
    for parent in path.parents:
        if parent.name == 'agent-transcripts':
            return parent.parent.name
    return ''


async def _first_user_message(path: Path, logger: LoggerProtocol) -> str:
    for record in await scan_jsonl_head(path, HEAD_LINES, logger):
        if not isinstance(record, Mapping) or record.get('role') != 'user':
            continue
        content = message_of(record).get('content')
        for block in content if isinstance(content, list) else []:
            if isinstance(block, Mapping) and block.get('type') == 'text' and isinstance(block.get('text'), str):
                cleaned = clean_user_query_text(block['text'])
                if is_real_user_message(cleaned):
                    return cleaned
    return ''


async def parse_cursor_sessions(logger: LoggerProtocol | None = None) -> list[UnifiedSession]:
    """Index every Cursor agent transcript larger than 100 bytes."""
    logger = logger or NullLogger()
    sessions: list[UnifiedSession] = []
    for path in _transcript_files():
        try:
            lines, size = await asyncio.to_thread(file_stats, path)
            if size <= MIN_SESSION_BYTES:
                continue
            first_user = await _first_user_message(path, logger)
            created_at, updated_at = file_times(path)
        except OSError as e:
            await logger.debug(f'Skipping Cursor transcript {path}: {e}')
            continue

        cwd = cwd_from_slug(_project_slug(path))
        sessions.append(
            UnifiedSession(
                id=path.stem,
                source='cursor',
                cwd=cwd,
                repo=extract_repo_from_cwd(cwd) or None,
                summary=clean_summary(first_user) or None,
                lines=lines,
                bytes=size,
                created_at=created_at,
                updated_at=updated_at,
                original_path=str(path),
            )
        )
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


async def extract_cursor_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """Extract messages, tool activity and thinking highlights from a Cursor transcript."""
    records = await read_jsonl(Path(session.original_path), logger)
    contents = [message_of(record).get('content') for record in records]

    invocations, results = invocations_from_content_blocks(contents)
    activity = summarize_invocations(invocations, build_result_lookup(results))

    return build_context(
        session,
        anthropic_messages(records, clean_user_text=True),
        activity,
        notes=SessionNotes(reasoning=extract_thinking_highlights(contents)),
        mode=mode,
    )
