"""
Adapter registry.

One ToolAdapter per supported agent binds its reader, its native-resume and
handoff argument builders, and its launch-flag mapper. Registration is static
and happens at import; a known tool without an adapter fails the import, so a
new tool cannot ship half-wired.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Final, get_args

import attrs

from continues.exceptions import RegistryError, UnknownSourceError
from continues.parsers import (
    extract_claude_context,
    extract_codex_context,
    extract_copilot_context,
    extract_cursor_context,
    extract_droid_context,
    extract_gemini_context,
    extract_opencode_context,
    parse_claude_sessions,
    parse_codex_sessions,
    parse_copilot_sessions,
    parse_cursor_sessions,
    parse_droid_sessions,
    parse_gemini_sessions,
    parse_opencode_sessions,
)
from continues.protocols import LoggerProtocol
from continues.schemas.session import SessionContext, UnifiedSession
from continues.services.flag_mappers import FLAG_MAPPERS
from continues.services.forwarding import FlagMapper
from continues.services.rendering import HandoffMode
from continues.types import SessionSource

__all__ = [
    'ADAPTERS',
    'KNOWN_TOOLS',
    'ToolAdapter',
    'all_tools',
    'check_registry',
    'get_adapter',
    'register',
]

KNOWN_TOOLS: Final[frozenset[str]] = frozenset(get_args(SessionSource))

SessionParser = Callable[[LoggerProtocol | None], Awaitable[list[UnifiedSession]]]
ContextExtractor = Callable[[UnifiedSession, HandoffMode | str, LoggerProtocol | None], Awaitable[SessionContext]]


@attrs.define(frozen=True)
class ToolAdapter:
    """Everything continues needs to read from and launch one agent CLI."""

    name: SessionSource
    label: str
    binary_name: str
    storage_path: str  # Shown in help text only
    parse_sessions: SessionParser
    extract_context: ContextExtractor
    native_resume_args: Callable[[UnifiedSession], list[str]]
    cross_tool_args: Callable[[str, str], list[str]]  # (prompt, cwd) -> args
    resume_command_display: Callable[[UnifiedSession], str]
    map_handoff_flags: FlagMapper | None = None


# Insertion order is display order
ADAPTERS: dict[str, ToolAdapter] = {}


def register(adapter: ToolAdapter) -> None:
    """
    Add an adapter to the registry.

    Raises:
        ValueError: If an adapter with the same name is already registered
    """
    if adapter.name in ADAPTERS:
        raise ValueError(f'Adapter already registered: {adapter.name}')
    ADAPTERS[adapter.name] = adapter


def check_registry(registered: dict[str, ToolAdapter] | None = None) -> None:
    """
    Fail when a known tool has no adapter.

    Raises:
        RegistryError: Naming every known tool that is missing
    """
    missing = KNOWN_TOOLS - set(ADAPTERS if registered is None else registered)
    if missing:
        raise RegistryError(missing)


def get_adapter(name: str) -> ToolAdapter:
    """
    Look up an adapter by tool name.

    Raises:
        UnknownSourceError: If no adapter is registered under that name
    """
    try:
        return ADAPTERS[name]
    except KeyError:
        raise UnknownSourceError(name, ADAPTERS) from None


def all_tools() -> list[str]:
    """Registered tool names in display order."""
    return list(ADAPTERS)


# ==============================================================================
# Static registrations
# ==============================================================================

register(
    ToolAdapter(
        name='claude',
        label='Claude Code',
        binary_name='claude',
        storage_path='~/.claude/projects/',
        parse_sessions=parse_claude_sessions,
        extract_context=extract_claude_context,
        native_resume_args=lambda s: ['--resume', s.id],
        cross_tool_args=lambda prompt, cwd: [prompt],
        resume_command_display=lambda s: f'claude --resume {s.id}',
        map_handoff_flags=FLAG_MAPPERS['claude'],
    )
)

register(
    ToolAdapter(
        name='codex',
        label='Codex CLI',
        binary_name='codex',
        storage_path='~/.codex/sessions/',
        parse_sessions=parse_codex_sessions,
        extract_context=extract_codex_context,
        native_resume_args=lambda s: ['-c', f'experimental_resume={s.original_path}'],
        cross_tool_args=lambda prompt, cwd: [prompt],
        resume_command_display=lambda s: f'codex -c experimental_resume="{s.original_path}"',
        map_handoff_flags=FLAG_MAPPERS['codex'],
    )
)

register(
    ToolAdapter(
        name='copilot',
        label='GitHub Copilot CLI',
        binary_name='copilot',
        storage_path='~/.copilot/session-state/',
        parse_sessions=parse_copilot_sessions,
        extract_context=extract_copilot_context,
        native_resume_args=lambda s: ['--resume', s.id],
        cross_tool_args=lambda prompt, cwd: ['-i', prompt],
        resume_command_display=lambda s: f'copilot --resume {s.id}',
        map_handoff_flags=FLAG_MAPPERS['copilot'],
    )
)

register(
    ToolAdapter(
        name='gemini',
        label='Gemini CLI',
        binary_name='gemini',
        storage_path='~/.gemini/tmp/*/chats/',
        parse_sessions=parse_gemini_sessions,
        extract_context=extract_gemini_context,
        # Gemini resumes the latest session of the working directory
        native_resume_args=lambda s: ['--continue'],
        cross_tool_args=lambda prompt, cwd: [prompt],
        resume_command_display=lambda s: 'gemini --continue',
        map_handoff_flags=FLAG_MAPPERS['gemini'],
    )
)

register(
    ToolAdapter(
        name='opencode',
        label='OpenCode',
        binary_name='opencode',
        storage_path='~/.local/share/opencode/',
        parse_sessions=parse_opencode_sessions,
        extract_context=extract_opencode_context,
        native_resume_args=lambda s: ['--session', s.id],
        cross_tool_args=lambda prompt, cwd: ['--prompt', prompt],
        resume_command_display=lambda s: f'opencode --session {s.id}',
        map_handoff_flags=FLAG_MAPPERS['opencode'],
    )
)

register(
    ToolAdapter(
        name='droid',
        label='Factory Droid',
        binary_name='droid',
        storage_path='~/.factory/sessions/',
        parse_sessions=parse_droid_sessions,
        extract_context=extract_droid_context,
        native_resume_args=lambda s: ['-s', s.id],
        cross_tool_args=lambda prompt, cwd: ['exec', prompt],
        resume_command_display=lambda s: f'droid -s {s.id}',
        map_handoff_flags=FLAG_MAPPERS['droid'],
    )
)

register(
    ToolAdapter(
        name='cursor',
        label='Cursor AI',
        binary_name='agent',
        storage_path='~/.cursor/projects/*/agent-transcripts/',
        parse_sessions=parse_cursor_sessions,
        extract_context=extract_cursor_context,
        # No session resume from the command line; open the project and read the handoff file
        native_resume_args=lambda s: [s.cwd],
        cross_tool_args=lambda prompt, cwd: [cwd],
        resume_command_display=lambda s: f'agent {s.cwd}',
        map_handoff_flags=FLAG_MAPPERS['cursor'],
    )
)

check_registry()
