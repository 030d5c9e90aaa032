"""
Shared fixtures for the continues test suite.

Every reader locates its store under Path.home(), so tests that touch session
files point HOME at a temporary directory first.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from continues.schemas.session import UnifiedSession


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary home directory; Path.home() resolves here for the test."""
    home_dir = tmp_path / 'home'
    home_dir.mkdir()
    monkeypatch.setenv('HOME', str(home_dir))
    return home_dir


def write_jsonl(path: Path, records: Iterable[Any]) -> Path:
    """Write records as JSONL, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(''.join(json.dumps(record) + '\n' for record in records), encoding='utf-8')
    return path


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


@pytest.fixture
def make_session() -> Callable[..., UnifiedSession]:
    """Factory for index entries with sensible defaults."""

    def factory(**overrides: Any) -> UnifiedSession:
        fields: dict[str, Any] = {
            'id': 'abc123456789',
            'source': 'claude',
            'cwd': '/home/dev/project',
            'repo': 'dev/project',
            'branch': 'main',
            'summary': 'Fix the login redirect',
            'lines': 12,
            'bytes': 4096,
            'created_at': datetime(2026, 3, 1, 9, 0, tzinfo=UTC),
            'updated_at': datetime(2026, 3, 1, 10, 30, tzinfo=UTC),
            'original_path': '/home/dev/.claude/projects/x/abc123456789.jsonl',
        }
        fields.update(overrides)
        return UnifiedSession(**fields)

    return factory
