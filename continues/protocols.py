"""
Logger protocol shared by readers and services.

Readers and the index report skipped files, degraded reads and failed sources
through this interface; the CLI decides what reaches the terminal.
"""

from __future__ import annotations

from typing import Protocol


class LoggerProtocol(Protocol):
    """
    Async leveled logger.

    Implementations:
    - CLILogger (cli/logger.py): stdout/stderr behind a verbosity threshold
    - NullLogger: discards everything; the default for library callers
    """

    async def debug(self, message: str) -> None: ...
    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """Logger that drops every message."""

    async def debug(self, message: str) -> None:
        pass

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass
