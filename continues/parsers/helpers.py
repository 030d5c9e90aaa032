"""
Helpers shared by every session reader.

File discovery, timestamp normalization, and the final assembly step that
turns a reader's extracted pieces into a rendered SessionContext.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

from continues.schemas.session import ConversationMessage, SessionContext, SessionNotes, UnifiedSession
from continues.services.extraction import ToolActivity, trim_messages
from continues.services.rendering import HandoffMode, render_handoff

__all__ = [
    'MAX_PENDING_TASKS',
    'UUID_RE',
    'build_context',
    'file_times',
    'find_files',
    'parse_timestamp',
]

MAX_PENDING_TASKS: Final = 5

UUID_RE: Final = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)


def find_files(root: Path, match: Callable[[Path], bool], pattern: str = '*') -> list[Path]:
    """
    Recursively collect files under root that satisfy ``match``.

    Returns an empty list when root doesn't exist. Unreadable subdirectories
    are skipped by ``rglob`` itself.
    """
    if not root.is_dir():
        return []
    return sorted(path for path in root.rglob(pattern) if path.is_file() and match(path))


def parse_timestamp(value: Any) -> datetime | None:
    """
    Normalize an ISO-8601 string, epoch number or naive datetime to an aware UTC datetime.

    Epoch values above 1e12 are treated as milliseconds. Anything unparseable
    yields None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def file_times(path: Path) -> tuple[datetime, datetime]:
    """(created, modified) from filesystem metadata, in UTC."""
    stat = path.stat()
    created = getattr(stat, 'st_birthtime', None) or min(stat.st_ctime, stat.st_mtime)
    return datetime.fromtimestamp(created, tz=UTC), datetime.fromtimestamp(stat.st_mtime, tz=UTC)


def build_context(
    session: UnifiedSession,
    messages: Sequence[ConversationMessage],
    activity: ToolActivity,
    pending_tasks: Sequence[str] = (),
    notes: SessionNotes | None = None,
    mode: HandoffMode | str = HandoffMode.INLINE,
) -> SessionContext:
    """
    Assemble a SessionContext and render its handoff document.

    Args:
        session: Index entry being extracted
        messages: Every conversation message in order (trimmed here)
        activity: Folded tool activity
        pending_tasks: Open tasks (capped here)
        notes: Session notes; empty notes are dropped
        mode: Display mode for rendering

    Returns:
        SessionContext with markdown populated
    """
    recent = trim_messages(messages)
    tasks = list(pending_tasks)[:MAX_PENDING_TASKS]
    if notes is not None and notes == SessionNotes():
        notes = None
    markdown = render_handoff(
        session,
        recent,
        activity.files_modified,
        tasks,
        activity.summaries,
        notes,
        mode,
    )
    return SessionContext(
        session=session,
        recent_messages=recent,
        files_modified=activity.files_modified,
        pending_tasks=tasks,
        tool_summaries=activity.summaries,
        session_notes=notes,
        markdown=markdown,
    )
