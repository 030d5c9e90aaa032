"""
Tests for the handoff Markdown document.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from continues.schemas.samples import (
    EditSample,
    GrepSample,
    McpSample,
    ShellSample,
    ToolSample,
    ToolUsageSummary,
    WriteSample,
)
from continues.schemas.session import ConversationMessage, SessionNotes, TokenUsage, UnifiedSession
from continues.services.diff import MAX_DIFF_LINES, count_diff_stats, format_new_file_diff
from continues.services.rendering import (
    CONTINUATION_DIRECTIVE,
    INLINE_CAPS,
    MAX_LINE_CHARS,
    REFERENCE_CAPS,
    HandoffMode,
    caps_for,
    render_handoff,
    source_label,
)

SessionFactory = Callable[..., UnifiedSession]


def _messages(count: int) -> list[ConversationMessage]:
    return [
        ConversationMessage(
            role='user' if i % 2 == 0 else 'assistant',
            content=f'message {i}',
            timestamp=datetime(2026, 3, 1, 10, i, tzinfo=UTC),
        )
        for i in range(count)
    ]


def _shell_summary(count: int, errors: int) -> ToolUsageSummary:
    samples = [ToolSample(summary=f'$ cmd {i}', data=ShellSample(command=f'cmd {i}', exit_code=0)) for i in range(8)]
    return ToolUsageSummary(name='shell', category='shell', count=count, error_count=errors, samples=samples)


def test_document_structure(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(), _messages(3), ['src/app.py'], ['Write tests'])

    assert markdown.startswith('# Session Handoff Context')
    sections = ['## Session Overview', '## Summary', '## Recent Conversation', '## Files Modified', '## Pending Tasks']
    positions = [markdown.index(section) for section in sections]
    assert positions == sorted(positions)
    assert markdown.rstrip().endswith(CONTINUATION_DIRECTIVE)
    assert '- [ ] Write tests' in markdown
    assert '- `src/app.py`' in markdown
    assert '| **Source** | Claude Code |' in markdown
    assert '| **Last Active** | 2026-03-01 10:30 |' in markdown


def test_optional_sections_are_omitted(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(summary=None), _messages(2), [], [])

    assert '## Summary' not in markdown
    assert '## Tool Activity' not in markdown
    assert '## Files Modified' not in markdown
    assert '## Pending Tasks' not in markdown
    assert '## Key Decisions' not in markdown


def test_empty_conversation_placeholder(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(), [], [], [])
    assert '*No conversation messages were recorded.*' in markdown


def test_only_last_ten_messages(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(), _messages(15), [], [])
    assert 'message 4\n' not in markdown
    assert 'message 5' in markdown
    assert markdown.count('### 👤 User') + markdown.count('### 🤖 Assistant') == 10


def test_shell_overflow_rendering(make_session: SessionFactory) -> None:
    """47 shell calls with one failure: five samples inline, the rest counted."""
    markdown = render_handoff(make_session(), _messages(2), [], [], [_shell_summary(47, 1)])

    assert '### Shell (47 calls, 1 errors)' in markdown
    assert sum(1 for line in markdown.split('\n') if line.startswith('`$ ')) == 5
    assert '*...and 42 more shell calls*' in markdown


def test_shell_overflow_without_errors_notes_exit_zero(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(), [], [], [], [_shell_summary(12, 0)])
    assert '*...and 7 more shell calls (all exit 0)*' in markdown


def test_reference_mode_uses_roomier_caps(make_session: SessionFactory) -> None:
    markdown = render_handoff(make_session(), [], [], [], [_shell_summary(47, 0)], mode=HandoffMode.REFERENCE)

    assert sum(1 for line in markdown.split('\n') if line.startswith('`$ ')) == 8
    assert '*...and 39 more shell calls (all exit 0)*' in markdown
    assert caps_for('reference') is REFERENCE_CAPS
    assert caps_for(HandoffMode.INLINE) is INLINE_CAPS


def test_new_file_diff_is_fenced(make_session: SessionFactory) -> None:
    diff = format_new_file_diff('line1\nline2', 'src/new.py').diff
    sample = WriteSample(file_path='src/new.py', is_new_file=True, diff=diff, diff_stats=count_diff_stats(diff))
    write = ToolUsageSummary(
        name='write',
        category='write',
        count=1,
        samples=[ToolSample(summary='write src/new.py', data=sample)],
    )

    markdown = render_handoff(make_session(), [], ['src/new.py'], [], [write])

    assert '`src/new.py` (+2 -0, new file)' in markdown
    block = markdown.split('```diff\n', 1)[1].split('\n```', 1)[0]
    assert block.split('\n') == ['--- /dev/null', '+++ b/src/new.py', '+line1', '+line2']


def test_long_diff_is_cut_at_inline_cap(make_session: SessionFactory) -> None:
    diff = '--- a/x.py\n+++ b/x.py\n' + '\n'.join(f'+line {i}' for i in range(60))
    sample = EditSample(file_path='x.py', diff=diff, diff_stats=count_diff_stats(diff))
    edit = ToolUsageSummary(name='edit', category='edit', count=1, samples=[ToolSample(summary='edit', data=sample)])

    markdown = render_handoff(make_session(), [], [], [], [edit])

    assert '*+20 lines truncated*' in markdown


def test_categories_render_in_fixed_order(make_session: SessionFactory) -> None:
    grep = ToolUsageSummary(
        name='grep',
        category='grep',
        count=1,
        samples=[ToolSample(summary='grep', data=GrepSample(pattern='TODO', target_path='src', match_count=3))],
    )
    mcp = ToolUsageSummary(
        name='mcp',
        category='mcp',
        count=1,
        samples=[ToolSample(summary='m', data=McpSample(tool_name='mcp__github__list_issues', params='repo=x'))],
    )

    markdown = render_handoff(make_session(), [], [], [], [mcp, grep, _shell_summary(1, 0)])

    order = [markdown.index(h) for h in ('### Shell', '### Grep', '### MCP')]
    assert order == sorted(order)
    assert '- `"TODO"` in `src` (3 matches)' in markdown
    assert '- mcp__github__list_issues(repo=x)' in markdown


def test_notes_render_model_tokens_and_decisions(make_session: SessionFactory) -> None:
    notes = SessionNotes(
        model='claude-sonnet-4',
        token_usage=TokenUsage(input=12000, output=3400),
        reasoning=['Keep the old endpoint for compatibility'],
    )

    markdown = render_handoff(make_session(), [], [], [], notes=notes)

    assert '| **Model** | claude-sonnet-4 |' in markdown
    assert '| **Tokens Used** | 12,000 in / 3,400 out |' in markdown
    assert '## Key Decisions' in markdown
    assert '- 💭 Keep the old endpoint for compatibility' in markdown


def test_long_message_is_truncated_and_code_fence_closed(make_session: SessionFactory) -> None:
    content = '```python\n' + 'x = 1\n' * 200
    message = ConversationMessage(role='assistant', content=content)

    markdown = render_handoff(make_session(), [message], [], [])

    body = markdown.split('### 🤖 Assistant\n\n', 1)[1].split('\n## ', 1)[0]
    assert '…' in body
    assert body.count('```') % 2 == 0


def test_output_invariants(make_session: SessionFactory) -> None:
    message = ConversationMessage(role='user', content='nul\x00byte')
    session = make_session(summary='y' * (MAX_LINE_CHARS + 50))

    markdown = render_handoff(session, [message], [], [])

    assert '\x00' not in markdown
    assert all(len(line) < MAX_LINE_CHARS for line in markdown.split('\n'))


def test_source_label() -> None:
    assert source_label('codex') == 'Codex CLI'
    assert source_label('cursor') == 'Cursor AI'


def test_files_modified_lists_every_path(make_session: SessionFactory) -> None:
    paths = ['src/app.py', 'src/models/user.py', 'README.md']

    markdown = render_handoff(make_session(), [], paths, [])

    section = markdown.split('## Files Modified\n\n', 1)[1].split('\n\n', 1)[0]
    assert section.split('\n') == ['- `src/app.py`', '- `src/models/user.py`', '- `README.md`']
    assert '| **Files Modified** | 3 |' in markdown


def test_non_ascii_content_survives(make_session: SessionFactory) -> None:
    message = ConversationMessage(role='user', content='Überprüfe die Grüße: 你好, émoji 🚀, ligature ﬁ')
    session = make_session(summary='Café ordering flow ☕')

    markdown = render_handoff(session, [message], ['docs/résumé.md'], ['Traduire en français'])

    assert markdown.encode('utf-8').decode('utf-8') == markdown
    assert '你好' in markdown and '🚀' in markdown
    assert '- `docs/résumé.md`' in markdown
    assert '> Café ordering flow ☕' in markdown
    assert '\x00' not in markdown
    assert all(len(line) < MAX_LINE_CHARS for line in markdown.split('\n'))


@pytest.mark.parametrize(
    ('mode', 'cap'),
    [(HandoffMode.INLINE, INLINE_CAPS.diff_lines), (HandoffMode.REFERENCE, REFERENCE_CAPS.diff_lines)],
    ids=['inline', 'reference'],
)
def test_hidden_diff_lines_include_upstream_truncation(
    make_session: SessionFactory, mode: HandoffMode, cap: int
) -> None:
    """A diff already capped at extraction still reports every hidden line."""
    total = 260
    result = format_new_file_diff('\n'.join(f'row {i}' for i in range(total)), 'data.csv')
    assert result.truncated == total - MAX_DIFF_LINES
    sample = WriteSample(
        file_path='data.csv',
        is_new_file=True,
        diff=result.diff,
        diff_stats=count_diff_stats(result.diff),
    )
    write = ToolUsageSummary(
        name='write',
        category='write',
        count=1,
        samples=[ToolSample(summary='write data.csv', data=sample)],
    )

    markdown = render_handoff(make_session(), [], ['data.csv'], [], [write], mode=mode)

    assert f'*+{total - cap} lines truncated*' in markdown
    block = markdown.split('```diff\n', 1)[1].split('\n```', 1)[0]
    assert len(block.split('\n')) == 2 + cap
