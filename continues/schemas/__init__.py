"""
Pydantic schemas for sessions, tool samples, invocations and launch flags.
"""

from __future__ import annotations

from .flags import (
    FLAG_SOURCE_ORDER,
    FlagKey,
    FlagMapping,
    FlagOccurrence,
    FlagSource,
    ForwardResolution,
)
from .invocations import (
    ToolInvocation,
    ToolResult,
)
from .samples import (
    CATEGORY_ORDER,
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
    StructuredToolSample,
    TaskSample,
    ToolCategory,
    ToolSample,
    ToolUsageSummary,
    WriteSample,
)
from .session import (
    CacheTokens,
    ConversationMessage,
    MessageRole,
    SessionContext,
    SessionNotes,
    TokenUsage,
    ToolCall,
    UnifiedSession,
)

__all__ = [
    # flags
    'FLAG_SOURCE_ORDER',
    'FlagKey',
    'FlagMapping',
    'FlagOccurrence',
    'FlagSource',
    'ForwardResolution',
    # invocations
    'ToolInvocation',
    'ToolResult',
    # samples
    'CATEGORY_ORDER',
    'AskSample',
    'DiffStats',
    'EditSample',
    'FetchSample',
    'GlobSample',
    'GrepSample',
    'McpSample',
    'ReadSample',
    'SearchSample',
    'ShellSample',
    'StructuredToolSample',
    'TaskSample',
    'ToolCategory',
    'ToolSample',
    'ToolUsageSummary',
    'WriteSample',
    # session
    'CacheTokens',
    'ConversationMessage',
    'MessageRole',
    'SessionContext',
    'SessionNotes',
    'TokenUsage',
    'ToolCall',
    'UnifiedSession',
]
