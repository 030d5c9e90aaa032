"""
Session index service.

Keeps a JSONL index of every tool's sessions in ~/.continues/sessions.jsonl,
rebuilt when older than the TTL, plus a cache of rendered handoff documents in
~/.continues/contexts/<session-id>.md.

Writes take a FileLock and replace the index atomically (temp file + rename),
so readers never see a half-written file. Concurrent rebuilds still race; the
last writer wins.
"""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pydantic
from filelock import FileLock

from continues.exceptions import SessionIndexError, StorageError
from continues.protocols import LoggerProtocol, NullLogger
from continues.registry import ADAPTERS, ToolAdapter
from continues.schemas.session import SessionContext, UnifiedSession

__all__ = [
    'DEFAULT_TTL_SECONDS',
    'SessionIndexService',
]

DEFAULT_TTL_SECONDS = 300


class SessionIndexService:
    """Service for building, caching and querying the cross-tool session index."""

    def __init__(
        self,
        home: Path | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        logger: LoggerProtocol | None = None,
        adapters: dict[str, ToolAdapter] | None = None,
    ) -> None:
        """
        Initialize with ~/.continues/ by default.

        Args:
            home: Directory holding the index and the context cache
            ttl_seconds: Index age after which it is rebuilt
            logger: Logger for skipped sources and degraded reads
            adapters: Adapters to index; defaults to the full registry
        """
        self.home = home or (Path.home() / '.continues')
        self.index_file = self.home / 'sessions.jsonl'
        self.lock_file = self.home / 'sessions.lock'
        self.contexts_dir = self.home / 'contexts'
        self.ttl_seconds = ttl_seconds
        self.logger = logger or NullLogger()
        self.adapters = ADAPTERS if adapters is None else adapters

    def needs_rebuild(self) -> bool:
        """True when the index is missing or older than the TTL."""
        try:
            mtime = self.index_file.stat().st_mtime
        except OSError:
            return True
        return time.time() - mtime > self.ttl_seconds

    async def build(self, force: bool = False) -> list[UnifiedSession]:
        """
        Return the index, rebuilding it from every adapter when stale or forced.

        A source whose reader fails is logged and skipped; the others are still
        indexed. An index that cannot be written is logged too, and the freshly
        parsed sessions are returned anyway.
        """
        if not force and not self.needs_rebuild():
            return await self.load()

        names = list(self.adapters)
        results = await asyncio.gather(
            *(self.adapters[name].parse_sessions(self.logger) for name in names),
            return_exceptions=True,
        )

        sessions: list[UnifiedSession] = []
        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                await self.logger.warning(f'Skipping {name} sessions: {result}')
                continue
            await self.logger.debug(f'Indexed {len(result)} {name} sessions')
            sessions.extend(result)

        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        try:
            self._write_index(sessions)
        except StorageError as e:
            await self.logger.warning(str(e))
            return sessions
        await self.logger.info(f'Index rebuilt: {len(sessions)} sessions')
        return sessions

    async def load(self) -> list[UnifiedSession]:
        """
        Read the index file.

        Corrupt lines are skipped. An unreadable or missing file yields an
        empty list rather than an error.
        """
        try:
            content = self._read_index()
        except SessionIndexError as e:
            await self.logger.warning(str(e))
            return []

        sessions: list[UnifiedSession] = []
        for line_number, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                sessions.append(UnifiedSession.model_validate_json(line))
            except pydantic.ValidationError:
                await self.logger.debug(f'Skipping corrupt index line {line_number}')
        return sessions

    async def all_sessions(self, force_rebuild: bool = False) -> list[UnifiedSession]:
        return await self.build(force_rebuild)

    async def sessions_by_source(self, source: str, force_rebuild: bool = False) -> list[UnifiedSession]:
        return [session for session in await self.build(force_rebuild) if session.source == source]

    async def find_session(self, id_or_prefix: str) -> UnifiedSession | None:
        """
        Find a session by full ID or ID prefix.

        An exact match wins; otherwise the newest session whose ID starts with
        the prefix.
        """
        sessions = await self.build()
        for session in sessions:
            if session.id == id_or_prefix:
                return session
        return next((session for session in sessions if session.id.startswith(id_or_prefix)), None)

    async def similar_sessions(self, query: str, limit: int = 3) -> list[UnifiedSession]:
        """Sessions whose ID or summary contains the query, case-insensitively."""
        needle = query.lower()
        return [
            session
            for session in await self.build()
            if needle in session.id.lower() or needle in (session.summary or '').lower()
        ][:limit]

    def save_context(self, context: SessionContext) -> Path:
        """
        Cache a rendered handoff document.

        Returns:
            Path of the written contexts/<session-id>.md file

        Raises:
            StorageError: If the file cannot be written
        """
        context_path = self.contexts_dir / f'{context.session.id}.md'
        try:
            self.contexts_dir.mkdir(parents=True, exist_ok=True)
            context_path.write_text(context.markdown, encoding='utf-8')
        except OSError as e:
            raise StorageError(str(context_path), f'Cannot write handoff context ({e})') from e
        return context_path

    def get_cached_context(self, session_id: str) -> str | None:
        """Cached handoff document for a session, if one was saved."""
        context_path = self.contexts_dir / f'{session_id}.md'
        try:
            return context_path.read_text(encoding='utf-8')
        except OSError:
            return None

    def _read_index(self) -> str:
        """
        Raw index text; empty when no index has been built yet.

        Raises:
            SessionIndexError: If the file exists but cannot be read
        """
        try:
            return self.index_file.read_text(encoding='utf-8')
        except FileNotFoundError:
            return ''
        except OSError as e:
            raise SessionIndexError(f'Cannot read session index {self.index_file}: {e}') from e

    def _write_index(self, sessions: list[UnifiedSession]) -> None:
        """Write sessions.jsonl atomically using temp file + rename under the lock."""
        tmp_file = self.index_file.with_suffix('.tmp.jsonl')
        try:
            self.home.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_file):
                with tmp_file.open('w', encoding='utf-8') as f:
                    for session in sessions:
                        f.write(session.model_dump_json() + '\n')
                os.replace(tmp_file, self.index_file)
        except OSError as e:
            raise StorageError(str(self.index_file), f'Cannot write session index ({e})') from e
