"""
Shared exceptions for continues.

Domain-specific exceptions used across readers, services and the CLI.

Exception Hierarchy:
    ContinuesError (base)
    ├── ParseError (one source file/line unreadable - skipped, never fatal)
    ├── SessionNotFoundError (no session matches an ID or prefix)
    ├── ToolNotAvailableError (target binary missing from PATH)
    ├── UnknownSourceError (source name has no registered adapter)
    ├── SessionIndexError (index file unreadable - callers degrade to empty)
    ├── StorageError (handoff/context file unwritable)
    └── RegistryError (known tool without an adapter - raised at import time)
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    'ContinuesError',
    'ParseError',
    'RegistryError',
    'SessionIndexError',
    'SessionNotFoundError',
    'StorageError',
    'ToolNotAvailableError',
    'UnknownSourceError',
]


class ContinuesError(Exception):
    """Base exception for all continues errors."""


class ParseError(ContinuesError):
    """Raised when a reader cannot interpret one session file or record."""

    def __init__(self, source: str, file_path: str, message: str) -> None:
        self.source = source
        self.file_path = file_path
        super().__init__(f'[{source}] {message} ({file_path})')


class SessionNotFoundError(ContinuesError):
    """Raised when no indexed session matches an ID or ID prefix."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f'Session not found: {session_id}')


class ToolNotAvailableError(ContinuesError):
    """Raised when a target CLI binary is not on PATH."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f'Tool not available: {tool}. Is it installed and on your PATH?')


class UnknownSourceError(ContinuesError):
    """Raised when a source name has no registered adapter."""

    def __init__(self, source: str, valid: Iterable[str] = ()) -> None:
        self.source = source
        valid_str = ', '.join(valid)
        suffix = f'. Valid sources: {valid_str}' if valid_str else ''
        super().__init__(f'Unknown source: "{source}"{suffix}')


class SessionIndexError(ContinuesError):
    """Raised when the session index cannot be read or written."""


class StorageError(ContinuesError):
    """Raised when a handoff or context file cannot be written."""

    def __init__(self, file_path: str, message: str) -> None:
        self.file_path = file_path
        super().__init__(f'{message}: {file_path}')


class RegistryError(ContinuesError):
    """Raised at import time when a known tool has no registered adapter."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f'No adapter registered for: {", ".join(self.missing)}')
