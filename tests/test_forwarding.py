"""
Tests for launch-flag parsing, the immutable FlagContext and resolution.
"""

from __future__ import annotations

import pytest

from continues.schemas.flags import FlagMapping
from continues.services.forwarding import (
    FlagContext,
    build_flag_context,
    format_forward_args,
    normalize_agent_sandbox,
    parse_boolean_like,
    parse_forward_flags,
    resolve_forwarding,
    split_csv,
)


def test_parse_value_forms() -> None:
    occurrences = parse_forward_flags(['--model', 'o3', '--sandbox=read-only', '-y', '--add-dir', '/tmp/a'])

    assert [(occ.key, occ.value, occ.source_flag, occ.indices) for occ in occurrences] == [
        ('model', 'o3', '--model', (0, 1)),
        ('sandbox', 'read-only', '--sandbox', (2,)),
        ('yolo', True, '-y', (3,)),
        ('addDir', '/tmp/a', '--add-dir', (4, 5)),
    ]
    assert [occ.seq for occ in occurrences] == [0, 1, 2, 3]


def test_optional_value_flag_without_value() -> None:
    (occurrence,) = parse_forward_flags(['--sandbox', '--yolo'])[:1]
    assert occurrence.value is True
    assert occurrence.indices == (0,)


def test_missing_required_value_produces_no_occurrence() -> None:
    assert parse_forward_flags(['--model']) == []
    assert parse_forward_flags(['--model', '--yolo'])[0].key == 'yolo'


def test_unknown_tokens_are_skipped() -> None:
    assert parse_forward_flags(['--search', '--unknown-flag', 'value']) == []


def test_context_is_immutable() -> None:
    ctx = build_flag_context(['--model', 'a', '--model', 'b'])

    consumed, value = ctx.consume_latest_string('model')

    assert value == 'b'
    assert ctx.has('model')
    assert not consumed.has('model')
    assert ctx.passthrough_args() == ['--model', 'a', '--model', 'b']
    assert consumed.passthrough_args() == []


def test_latest_occurrence_wins_across_sources() -> None:
    """CLI arrives last, so it beats config and interactive answers."""
    ctx = build_flag_context(
        {
            'cli': ['--model', 'from-cli'],
            'config': ['--model', 'from-config'],
            'interactive': ['--model', 'from-prompt'],
        }
    )

    assert ctx.latest_string('model') == 'from-cli'
    assert ctx.all_strings('model') == ['from-config', 'from-prompt', 'from-cli']


def test_csv_values() -> None:
    ctx = build_flag_context(['--allowed-tools', 'Read,Write', '--allowed-tools', ' Bash '])
    assert ctx.all_csv_strings('allowedTools') == ['Read', 'Write', 'Bash']
    assert split_csv(['a,,b', '']) == ['a', 'b']


def test_any_boolean_respects_false_values() -> None:
    ctx = build_flag_context(['--yolo=false'])
    _, enabled = ctx.consume_any_boolean('yolo')
    assert not enabled


def _identity(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    return ctx, FlagMapping()


def test_resolution_without_mapper_passes_everything_through() -> None:
    resolution = resolve_forwarding(['--model', 'o3', '--weird'], None)

    assert resolution.mapped_args == []
    assert resolution.extra_args == ['--model', 'o3', '--weird']
    assert [occ.key for occ in resolution.unresolved] == ['model']


def test_resolution_is_repeatable() -> None:
    sources = {'cli': ['--model', 'o3', '--extra']}
    assert resolve_forwarding(sources, _identity) == resolve_forwarding(sources, _identity)


def test_resolution_of_empty_sources() -> None:
    resolution = resolve_forwarding(None, _identity)
    assert resolution.extra_args == []
    assert resolution.warnings == []


@pytest.mark.parametrize(
    ('value', 'expected'),
    [('yes', True), ('Off', False), ('maybe', None), (True, True)],
)
def test_parse_boolean_like(value: str | bool, expected: bool | None) -> None:
    assert parse_boolean_like(value) is expected


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('workspace-write', 'enabled'),
        ('read-only', 'enabled'),
        ('danger-full-access', 'disabled'),
        (False, 'disabled'),
        ('sometimes', None),
        (None, None),
    ],
)
def test_normalize_agent_sandbox(value: str | bool | None, expected: str | None) -> None:
    assert normalize_agent_sandbox(value) == expected


def test_format_forward_args_quotes_for_the_shell() -> None:
    assert format_forward_args(['--model', 'gpt 5', '--yolo']) == "--model 'gpt 5' --yolo"
