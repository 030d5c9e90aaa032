"""
Tests for the per-target launch-flag mappers.

Each case resolves raw CLI tokens against one target and checks the final
argument list: mapped arguments first, then every token no mapper consumed.
"""

from __future__ import annotations

import pytest

from continues.services.flag_mappers import FLAG_MAPPERS
from continues.services.forwarding import resolve_forwarding
from continues.types import SessionSource


def _resolve(target: SessionSource, tokens: list[str]):  # type: ignore[no-untyped-def]
    return resolve_forwarding({'cli': tokens}, FLAG_MAPPERS[target])


def test_every_tool_has_a_mapper() -> None:
    assert set(FLAG_MAPPERS) == {'claude', 'codex', 'copilot', 'gemini', 'opencode', 'droid', 'cursor'}


def test_codex_auto_approve_overrides_weaker_flags() -> None:
    tokens = ['--yolo', '--full-auto', '--sandbox', 'workspace-write', '--ask-for-approval', 'never']

    resolution = _resolve('codex', tokens)

    assert resolution.extra_args == ['--dangerously-bypass-approvals-and-sandbox']
    assert resolution.passthrough_args == []
    assert resolution.warnings
    assert '--full-auto' in resolution.warnings[0]


def test_codex_full_auto_overrides_sandbox() -> None:
    resolution = _resolve('codex', ['--full-auto', '--sandbox', 'read-only'])

    assert resolution.extra_args == ['--full-auto']
    assert len(resolution.warnings) == 1


def test_codex_explicit_sandbox_and_approval() -> None:
    resolution = _resolve('codex', ['-s', 'read-only', '-a', 'on-request', '-m', 'o3', '--add-dir', 'a,b'])

    assert resolution.extra_args == [
        '--sandbox',
        'read-only',
        '--ask-for-approval',
        'on-request',
        '--model',
        'o3',
        '--add-dir',
        'a',
        '--add-dir',
        'b',
    ]
    assert resolution.warnings == []


def test_claude_passes_unknown_flags_through() -> None:
    resolution = _resolve('claude', ['--search', '--unknown-flag', 'value'])

    assert resolution.mapped_args == []
    assert resolution.extra_args == ['--search', '--unknown-flag', 'value']


def test_claude_auto_approve_and_plan() -> None:
    resolution = _resolve('claude', ['--yolo', '--permission-mode', 'plan', '--model', 'opus'])

    assert resolution.extra_args == ['--dangerously-skip-permissions', '--model', 'opus']
    assert len(resolution.warnings) == 1

    plan_only = _resolve('claude', ['--plan'])
    assert plan_only.extra_args == ['--permission-mode', 'plan']


def test_gemini_renames_add_dir() -> None:
    resolution = _resolve('gemini', ['--add-dir', '/tmp/workspace'])
    assert resolution.extra_args == ['--include-directories', '/tmp/workspace']


@pytest.mark.parametrize(
    ('tokens', 'expected'),
    [
        (['--yolo'], ['--approval-mode', 'yolo']),
        (['--full-auto'], ['--approval-mode', 'auto_edit']),
        (['--approval-mode', 'default'], ['--approval-mode', 'default']),
        (['--sandbox', 'workspace-write'], ['--sandbox']),
        (['--sandbox', 'danger-full-access'], []),
    ],
    ids=['yolo', 'full-auto', 'explicit', 'sandbox-on', 'sandbox-off'],
)
def test_gemini_autonomy(tokens: list[str], expected: list[str]) -> None:
    assert _resolve('gemini', tokens).extra_args == expected


def test_cursor_normalizes_sandbox() -> None:
    resolution = _resolve('cursor', ['--sandbox', 'workspace-write', '--model', 'gpt-5', '--approve-mcps'])
    assert resolution.extra_args == ['--model', 'gpt-5', '--sandbox', 'enabled', '--approve-mcps']


def test_cursor_unrecognized_sandbox_warns_and_passes_through() -> None:
    resolution = _resolve('cursor', ['--sandbox', 'sometimes'])

    assert resolution.extra_args == ['--sandbox', 'sometimes']
    assert len(resolution.warnings) == 1


def test_copilot_allow_all() -> None:
    resolution = _resolve('copilot', ['--yolo', '--allow-tool', 'shell', '--deny-tool', 'write'])

    assert resolution.extra_args == ['--allow-all-tools', '--deny-tool', 'write']
    assert len(resolution.warnings) == 1


def test_opencode_drops_auto_approve_with_warning() -> None:
    resolution = _resolve('opencode', ['--yolo', '--model', 'anthropic/claude-sonnet-4'])

    assert resolution.extra_args == ['--model', 'anthropic/claude-sonnet-4']
    assert 'opencode' in resolution.warnings[0]


def test_droid_passes_everything_through() -> None:
    resolution = _resolve('droid', ['--model', 'x', '--yolo'])
    assert resolution.extra_args == ['--model', 'x', '--yolo']
    assert resolution.mapped_args == []
