"""
Tests for handoff planning and the launcher.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import write_jsonl

from continues.exceptions import ToolNotAvailableError
from continues.launcher import available_tools, launch
from continues.schemas.session import UnifiedSession
from continues.services.handoff import (
    HANDOFF_FILENAME,
    LaunchPlan,
    build_reference_prompt,
    plan_launch,
    resolve_target_forwarding,
    resume_command,
    write_handoff_file,
)
from continues.services.index import SessionIndexService

SessionFactory = Callable[..., UnifiedSession]


@pytest.fixture
def claude_session(tmp_path: Path, make_session: SessionFactory) -> UnifiedSession:
    """A Claude session whose file and project directory exist on disk."""
    project = tmp_path / 'project'
    project.mkdir()
    base = {'sessionId': 'abc123456789', 'cwd': str(project), 'gitBranch': 'main'}
    session_file = write_jsonl(
        tmp_path / 'abc123456789.jsonl',
        [
            {
                **base,
                'type': 'user',
                'timestamp': '2026-03-01T10:00:00Z',
                'message': {'role': 'user', 'content': 'Fix the login redirect'},
            },
            {
                **base,
                'type': 'assistant',
                'timestamp': '2026-03-01T10:01:00Z',
                'message': {'role': 'assistant', 'content': [{'type': 'text', 'text': 'Looking at the view now.'}]},
            },
        ],
    )
    return make_session(cwd=str(project), original_path=str(session_file))


def test_same_tool_resume_command(make_session: SessionFactory) -> None:
    assert resume_command(make_session()) == 'claude --resume abc123456789'


def test_cross_tool_resume_command_includes_forwarded_flags(make_session: SessionFactory) -> None:
    forwarding = resolve_target_forwarding('codex', ['--yolo', '--search'])

    command = resume_command(make_session(), 'codex', forwarding)

    assert command.startswith('continues resume abc123456789 --in codex')
    assert '--dangerously-bypass-approvals-and-sandbox' in command
    assert '--search' in command


def test_reference_prompt(make_session: SessionFactory) -> None:
    prompt = build_reference_prompt(make_session(), Path('/home/dev/project') / HANDOFF_FILENAME)

    assert 'Picking up a coding session from **Claude Code**' in prompt
    assert '| Working directory | `/home/dev/project` |' in prompt
    assert '| Last task | Fix the login redirect |' in prompt
    assert '| Last task |' not in build_reference_prompt(make_session(summary=None), HANDOFF_FILENAME)


def test_write_handoff_file_failure_is_not_fatal(tmp_path: Path) -> None:
    assert asyncio.run(write_handoff_file(str(tmp_path / 'missing'), '# doc')) is None
    assert asyncio.run(write_handoff_file(str(tmp_path), '# doc')) == tmp_path / HANDOFF_FILENAME


def test_native_plan_ignores_forward_flags(make_session: SessionFactory) -> None:
    forwarding = resolve_target_forwarding('claude', ['--yolo'])

    plan = asyncio.run(plan_launch(make_session(), forwarding=forwarding))

    assert plan == LaunchPlan(binary='claude', args=['--resume', 'abc123456789'], cwd='/home/dev/project')


def test_cross_tool_inline_plan(tmp_path: Path, claude_session: UnifiedSession) -> None:
    index = SessionIndexService(home=tmp_path / '.continues', adapters={})
    forwarding = resolve_target_forwarding('codex', ['--yolo'])

    plan = asyncio.run(plan_launch(claude_session, 'codex', forwarding=forwarding, index=index))

    handoff_file = Path(claude_session.cwd) / HANDOFF_FILENAME
    assert plan.binary == 'codex'
    assert not plan.native
    assert plan.prompt_file == handoff_file
    assert plan.args[:-1] == ['--dangerously-bypass-approvals-and-sandbox']
    assert plan.args[-1].startswith("I'm continuing a coding session from **Claude Code**")
    assert '# Session Handoff Context' in handoff_file.read_text()
    assert index.get_cached_context('abc123456789') == handoff_file.read_text()


def test_cross_tool_reference_plan(claude_session: UnifiedSession) -> None:
    plan = asyncio.run(plan_launch(claude_session, 'copilot', mode='reference'))

    assert plan.args[0] == '-i'
    assert plan.args[1].startswith('# 🔄 Session Handoff')
    assert f'`{HANDOFF_FILENAME}`' in plan.args[1]


def test_launch_missing_binary() -> None:
    plan = LaunchPlan(binary='definitely-not-an-agent-cli', args=[], cwd='.')

    with pytest.raises(ToolNotAvailableError, match='definitely-not-an-agent-cli'):
        launch(plan)


def test_available_tools_follows_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('continues.launcher.shutil.which', lambda binary: '/usr/bin/x' if binary == 'agent' else None)
    assert available_tools() == ['cursor']
