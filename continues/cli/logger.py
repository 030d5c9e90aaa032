"""
CLI logger adapter - implements LoggerProtocol for command-line usage.

Provides a leveled logger that writes to stdout/stderr for CLI commands.
Levels (increasing verbosity): silent -> error -> warn -> info -> debug.
"""

from __future__ import annotations

import os

import typer

from continues.types import LogLevel

LEVELS: dict[LogLevel, int] = {
    'silent': 0,
    'error': 1,
    'warn': 2,
    'info': 3,
    'debug': 4,
}


def level_from_flags(verbose: bool = False, debug: bool = False) -> LogLevel:
    """Resolve the effective level from CLI flags and CONTINUES_DEBUG."""
    if debug or os.getenv('CONTINUES_DEBUG', '').lower() in ('1', 'true'):
        return 'debug'
    if verbose:
        return 'info'
    return 'warn'


class CLILogger:
    """
    Logger implementation for CLI (implements LoggerProtocol from services).

    Warnings and errors go to stderr so piped `--json` output stays clean.
    """

    def __init__(self, level: LogLevel = 'warn') -> None:
        """
        Initialize CLI logger.

        Args:
            level: Most verbose level that is still printed.
        """
        self.level = level

    def _enabled(self, level: LogLevel) -> bool:
        return LEVELS[level] <= LEVELS[self.level]

    async def debug(self, message: str) -> None:
        """Log debug message (only at debug level)."""
        if self._enabled('debug'):
            typer.echo(f'[DEBUG] {message}', err=True)

    async def info(self, message: str) -> None:
        """Log info message (only if verbose)."""
        if self._enabled('info'):
            typer.echo(f'[INFO] {message}')

    async def warning(self, message: str) -> None:
        """Log warning message."""
        if self._enabled('warn'):
            typer.secho(f'[WARNING] {message}', fg=typer.colors.YELLOW, err=True)

    async def error(self, message: str) -> None:
        """Log error message."""
        if self._enabled('error'):
            typer.secho(f'[ERROR] {message}', fg=typer.colors.RED, err=True)
