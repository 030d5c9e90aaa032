"""
Session-level models shared by every reader.

A reader maps its tool's native format into UnifiedSession (index metadata)
and ConversationMessage lists; the extraction pipeline produces SessionContext.
"""

from __future__ import annotations

from typing import Any, Literal

import pydantic

from continues.base_model import StrictModel
from continues.schemas.samples import ToolUsageSummary
from continues.types import JsonDatetime, SessionSource

__all__ = [
    'CacheTokens',
    'ConversationMessage',
    'MessageRole',
    'SessionContext',
    'SessionNotes',
    'TokenUsage',
    'ToolCall',
    'UnifiedSession',
]

MessageRole = Literal['user', 'assistant', 'system', 'tool']


class UnifiedSession(StrictModel):
    """Index entry for one session of any tool."""

    id: str
    source: SessionSource
    cwd: str
    repo: str | None = None
    branch: str | None = None
    summary: str | None = None
    lines: int = 0  # Conversation records/turns
    bytes: int = 0  # Size of the session file (0 for database-backed sources)
    created_at: JsonDatetime
    updated_at: JsonDatetime
    original_path: str  # Session file, directory, or database
    model: str | None = None


class ToolCall(StrictModel):
    name: str
    id: str | None = None
    arguments: dict[str, Any] | None = None
    result: str | None = None
    success: bool | None = None


class ConversationMessage(StrictModel):
    role: MessageRole
    content: str
    timestamp: JsonDatetime | None = None
    tool_calls: list[ToolCall] = pydantic.Field(default_factory=list)


class TokenUsage(StrictModel):
    input: int
    output: int


class CacheTokens(StrictModel):
    creation: int = 0
    read: int = 0


class SessionNotes(StrictModel):
    """Secondary facts about a session: model, token use, reasoning highlights."""

    model: str | None = None
    token_usage: TokenUsage | None = None
    cache_tokens: CacheTokens | None = None
    thinking_tokens: int | None = None
    reasoning: list[str] = pydantic.Field(default_factory=list)  # <= 5 entries, each <= 200 chars


class SessionContext(StrictModel):
    """Everything extracted from one session, plus its rendered handoff document."""

    session: UnifiedSession
    recent_messages: list[ConversationMessage]  # <= 10
    files_modified: list[str]  # Deduplicated, insertion order
    pending_tasks: list[str]  # <= 5
    tool_summaries: list[ToolUsageSummary]
    session_notes: SessionNotes | None = None
    markdown: str
