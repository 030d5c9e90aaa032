"""
Tests for the per-tool session readers.

Each test lays out a minimal session store under a temporary HOME in the
tool's native format, then checks both the index entry and the extracted
context.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path

import pytest
from conftest import write_json, write_jsonl

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
from continues.parsers.codex import parse_rollout_filename
from continues.parsers.droid import pending_tasks_from_todos
from continues.registry import ADAPTERS
from continues.services.handoff import build_inline_prompt, extract_context
from continues.services.rendering import source_label

CLAUDE_ID = '5f0c2a9e-1b7d-4c3e-9a8f-2d6e4b1c7a90'
CODEX_ID = '0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a5b'
CURSOR_ID = '8d3e1f20-6a4b-4c5d-8e9f-a0b1c2d3e4f5'
DROID_ID = 'c4b3a291-0f8e-4d7c-b6a5-948372615a0b'

# 2026-03-01T10:00:00Z in epoch milliseconds
T0_MS = 1772359200000


def _tool_counts(context) -> dict[str, int]:  # type: ignore[no-untyped-def]
    return {summary.name: summary.count for summary in context.tool_summaries}


# ==============================================================================
# Claude
# ==============================================================================


def _claude_records() -> list[dict[str, object]]:
    base = {'sessionId': CLAUDE_ID, 'cwd': '/home/dev/project', 'gitBranch': 'main'}
    return [
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
            'message': {
                'role': 'assistant',
                'model': 'claude-sonnet-4',
                'usage': {'input_tokens': 1200, 'output_tokens': 300, 'cache_read_input_tokens': 50},
                'content': [
                    {'type': 'thinking', 'thinking': 'The redirect drops the next parameter. Check the view.'},
                    {'type': 'text', 'text': 'Running the tests first.'},
                    {'type': 'tool_use', 'id': 'tu_1', 'name': 'Bash', 'input': {'command': 'pytest tests/auth'}},
                ],
            },
        },
        {
            **base,
            'type': 'user',
            'timestamp': '2026-03-01T10:02:00Z',
            'message': {
                'role': 'user',
                'content': [{'type': 'tool_result', 'tool_use_id': 'tu_1', 'content': 'Exit code: 1\n1 failed'}],
            },
        },
        {
            **base,
            'type': 'assistant',
            'timestamp': '2026-03-01T10:03:00Z',
            'message': {
                'role': 'assistant',
                'content': [
                    {
                        'type': 'tool_use',
                        'id': 'tu_2',
                        'name': 'TodoWrite',
                        'input': {
                            'todos': [
                                {'content': 'Add regression test', 'status': 'pending'},
                                {'content': 'Reproduce bug', 'status': 'completed'},
                            ]
                        },
                    }
                ],
            },
        },
    ]


def test_claude_sessions(home: Path) -> None:
    project = home / '.claude' / 'projects' / '-home-dev-project'
    write_jsonl(project / f'{CLAUDE_ID}.jsonl', _claude_records())
    write_jsonl(project / 'not-a-session.jsonl', _claude_records())
    write_jsonl(project / '0a1b2c3d-0000-4000-8000-000000000000.jsonl', [{'type': 'summary'}])

    sessions = asyncio.run(parse_claude_sessions())

    assert [session.id for session in sessions] == [CLAUDE_ID]
    session = sessions[0]
    assert session.source == 'claude'
    assert session.cwd == '/home/dev/project'
    assert session.branch == 'main'
    assert session.repo == 'dev/project'
    assert session.summary == 'Fix the login redirect'
    assert session.lines == 4

    context = asyncio.run(extract_claude_context(session))

    assert [message.role for message in context.recent_messages] == ['user', 'assistant']
    assert _tool_counts(context) == {'shell': 1}
    assert context.tool_summaries[0].error_count == 1
    assert context.pending_tasks == ['Add regression test']
    assert context.session_notes is not None
    assert context.session_notes.model == 'claude-sonnet-4'
    assert context.session_notes.reasoning == ['The redirect drops the next parameter']
    assert '## Session Overview' in context.markdown


def test_claude_missing_store(home: Path) -> None:
    assert asyncio.run(parse_claude_sessions()) == []


# ==============================================================================
# Codex
# ==============================================================================


def _codex_records() -> list[dict[str, object]]:
    ts = '2026-03-01T10:00:00Z'
    return [
        {
            'timestamp': ts,
            'type': 'session_meta',
            'payload': {
                'id': CODEX_ID,
                'cwd': '/home/dev/api',
                'git': {'repository_url': 'git@github.com:acme/api.git', 'branch': 'feature'},
            },
        },
        {'timestamp': ts, 'type': 'turn_context', 'payload': {'model': 'gpt-5-codex'}},
        {'timestamp': ts, 'type': 'event_msg', 'payload': {'type': 'user_message', 'message': 'Add pagination'}},
        {
            'timestamp': ts,
            'type': 'response_item',
            'payload': {
                'type': 'message',
                'role': 'user',
                'content': [{'type': 'input_text', 'text': 'Add pagination'}],
            },
        },
        {
            'timestamp': ts,
            'type': 'event_msg',
            'payload': {'type': 'agent_reasoning', 'text': 'Thread the cursor through the query layer first.'},
        },
        {
            'timestamp': ts,
            'type': 'response_item',
            'payload': {
                'type': 'function_call',
                'name': 'shell',
                'call_id': 'call_1',
                'arguments': json.dumps({'command': ['bash', '-lc', 'pytest -q']}),
            },
        },
        {
            'timestamp': ts,
            'type': 'response_item',
            'payload': {
                'type': 'function_call_output',
                'call_id': 'call_1',
                'output': json.dumps({'output': '12 passed', 'metadata': {'exit_code': 0}}),
            },
        },
        {
            'timestamp': ts,
            'type': 'response_item',
            'payload': {
                'type': 'message',
                'role': 'assistant',
                'content': [{'type': 'output_text', 'text': 'Pagination is in place.'}],
            },
        },
        {
            'timestamp': ts,
            'type': 'event_msg',
            'payload': {
                'type': 'token_count',
                'info': {'total_token_usage': {'input_tokens': 1000, 'output_tokens': 200, 'cached_input_tokens': 300}},
            },
        },
    ]


def test_parse_rollout_filename() -> None:
    started, session_id = parse_rollout_filename(f'rollout-2026-03-01T10-00-00-{CODEX_ID}.jsonl') or (None, None)
    assert session_id == CODEX_ID
    assert started is not None and started.hour == 10
    assert parse_rollout_filename('rollout-bad.jsonl') is None


def test_codex_sessions(home: Path) -> None:
    rollout = home / '.codex' / 'sessions' / '2026' / '03' / '01' / f'rollout-2026-03-01T10-00-00-{CODEX_ID}.jsonl'
    write_jsonl(rollout, _codex_records())

    (session,) = asyncio.run(parse_codex_sessions())

    assert session.id == CODEX_ID
    assert session.cwd == '/home/dev/api'
    assert session.repo == 'acme/api'
    assert session.branch == 'feature'
    assert session.summary == 'Add pagination'

    context = asyncio.run(extract_codex_context(session))

    assert [(m.role, m.content) for m in context.recent_messages] == [
        ('user', 'Add pagination'),
        ('assistant', 'Pagination is in place.'),
    ]
    shell = context.tool_summaries[0]
    assert (shell.name, shell.count, shell.error_count) == ('shell', 1, 0)
    assert shell.samples[0].data is not None
    assert shell.samples[0].data.category == 'shell'
    assert shell.samples[0].data.command == 'pytest -q'  # type: ignore[union-attr]
    assert shell.samples[0].data.exit_code == 0  # type: ignore[union-attr]
    notes = context.session_notes
    assert notes is not None
    assert notes.model == 'gpt-5-codex'
    assert notes.token_usage is not None and notes.token_usage.input == 1000
    assert notes.cache_tokens is not None and notes.cache_tokens.read == 300
    assert notes.reasoning == ['Thread the cursor through the query layer first']


# ==============================================================================
# Gemini
# ==============================================================================


def _gemini_session(session_id: str, messages: list[dict[str, object]]) -> dict[str, object]:
    return {
        'sessionId': session_id,
        'projectHash': 'f00d',
        'startTime': '2026-03-01T10:00:00Z',
        'lastUpdated': '2026-03-01T11:00:00Z',
        'messages': messages,
    }


def _write_gemini_store(home: Path) -> None:
    chats = home / '.gemini' / 'tmp' / 'f00d' / 'chats'
    messages = [
        {'id': '1', 'timestamp': '2026-03-01T10:00:00Z', 'type': 'user', 'content': 'Refactor the parser'},
        {
            'id': '2',
            'timestamp': '2026-03-01T10:05:00Z',
            'type': 'gemini',
            'content': 'Refactored.',
            'model': 'gemini-2.5-pro',
            'tokens': {'input': 500, 'output': 100, 'cached': 40, 'thoughts': 20},
            'thoughts': [{'subject': 'Next step: add tests', 'description': 'Cover the new tokenizer paths'}],
            'toolCalls': [
                {
                    'id': 't1',
                    'name': 'replace',
                    'args': {'file_path': 'parser.py', 'old_string': 'a', 'new_string': 'b'},
                    'status': 'success',
                    'result': [{'functionResponse': {'response': {'output': 'ok'}}}],
                    'resultDisplay': {
                        'fileDiff': '--- a/parser.py\n+++ b/parser.py\n-a\n+b',
                        'fileName': 'parser.py',
                        'diffStat': {'model_added_lines': 1, 'model_removed_lines': 1},
                    },
                }
            ],
        },
    ]
    write_json(chats / 'session-2026-03-01T10-00-aaaa.json', _gemini_session('gem-1', messages))
    write_json(chats / 'session-2026-03-01T09-00-bbbb.json', _gemini_session('gem-auth', []))


def test_gemini_sessions(home: Path) -> None:
    _write_gemini_store(home)

    (session,) = asyncio.run(parse_gemini_sessions())

    assert session.id == 'gem-1'
    assert session.cwd == ''
    assert session.summary == 'Refactor the parser'

    context = asyncio.run(extract_gemini_context(session))

    assert context.session.model == 'gemini-2.5-pro'
    assert context.files_modified == ['parser.py']
    edit = context.tool_summaries[0]
    assert edit.category == 'edit'
    assert edit.samples[0].data is not None
    assert edit.samples[0].data.diff_stats.added == 1  # type: ignore[union-attr]
    assert context.pending_tasks == ['Next step: add tests']
    assert context.session_notes is not None
    assert context.session_notes.thinking_tokens == 20


# ==============================================================================
# Copilot
# ==============================================================================


def _write_copilot_store(home: Path) -> None:
    session_dir = home / '.copilot' / 'session-state' / 'cp-1'
    session_dir.mkdir(parents=True)
    (session_dir / 'workspace.yaml').write_text(
        'id: cp-1\n'
        'cwd: /home/dev/web\n'
        'repository: acme/web\n'
        'branch: main\n'
        'summary: |\n'
        '  Add dark mode\n'
        '  and persist the choice\n'
        "created_at: '2026-03-01T10:00:00Z'\n"
        "updated_at: '2026-03-01T12:00:00Z'\n",
        encoding='utf-8',
    )
    write_jsonl(
        session_dir / 'events.jsonl',
        [
            {'type': 'session.start', 'data': {'selectedModel': 'gpt-4.1'}},
            {'type': 'user.message', 'timestamp': '2026-03-01T10:00:00Z', 'data': {'content': 'Add dark mode'}},
            {
                'type': 'assistant.message',
                'data': {
                    'content': '',
                    'toolRequests': [{'toolCallId': 'tc1', 'name': 'bash', 'arguments': {'command': 'npm test'}}],
                },
            },
            {
                'type': 'tool.execution_complete',
                'data': {'toolCallId': 'tc1', 'success': True, 'result': {'content': 'All tests passed'}},
            },
            {'type': 'assistant.message', 'data': {'content': 'Dark mode is live.'}},
        ],
    )
    # No events file: not a session
    (home / '.copilot' / 'session-state' / 'cp-2').mkdir()
    (home / '.copilot' / 'session-state' / 'cp-2' / 'workspace.yaml').write_text('id: cp-2\n', encoding='utf-8')


def test_copilot_sessions(home: Path) -> None:
    _write_copilot_store(home)

    (session,) = asyncio.run(parse_copilot_sessions())

    assert session.id == 'cp-1'
    assert session.repo == 'acme/web'
    assert session.summary == 'Add dark mode'
    assert session.model == 'gpt-4.1'

    context = asyncio.run(extract_copilot_context(session))

    assert [m.content for m in context.recent_messages] == [
        'Add dark mode',
        '[Used tools: bash]',
        'Dark mode is live.',
    ]
    assert _tool_counts(context) == {'shell': 1}


# ==============================================================================
# OpenCode
# ==============================================================================


def _create_opencode_db(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    db = sqlite3.connect(path)
    try:
        db.executescript(
            """
            CREATE TABLE project (id TEXT PRIMARY KEY, worktree TEXT);
            CREATE TABLE session (
                id TEXT PRIMARY KEY, project_id TEXT, slug TEXT, directory TEXT, title TEXT,
                time_created INTEGER, time_updated INTEGER
            );
            CREATE TABLE message (id TEXT PRIMARY KEY, session_id TEXT, time_created INTEGER, data TEXT);
            CREATE TABLE part (id TEXT PRIMARY KEY, message_id TEXT, time_created INTEGER, data TEXT);
            """
        )
        db.execute("INSERT INTO project VALUES ('prj_1', '/home/dev/cache')")
        db.execute(
            'INSERT INTO session VALUES (?, ?, ?, ?, ?, ?, ?)',
            ('ses_1', 'prj_1', 'calm-river', None, 'New session - 2026-03-01', T0_MS, T0_MS + 60_000),
        )
        db.execute(
            'INSERT INTO message VALUES (?, ?, ?, ?)', ('msg_1', 'ses_1', T0_MS, json.dumps({'role': 'user'}))
        )
        db.execute(
            'INSERT INTO message VALUES (?, ?, ?, ?)',
            ('msg_2', 'ses_1', T0_MS + 1000, json.dumps({'role': 'assistant', 'modelID': 'claude-sonnet-4'})),
        )
        tool_part = {
            'type': 'tool',
            'tool': 'edit',
            'callID': 'c1',
            'state': {
                'status': 'completed',
                'input': {'filePath': '/home/dev/cache/store.py', 'oldString': 'x = 1', 'newString': 'x = 2'},
                'output': 'Edited',
            },
        }
        parts = [
            ('prt_1', 'msg_1', T0_MS, {'type': 'text', 'text': 'Add a caching layer'}),
            ('prt_2', 'msg_2', T0_MS + 1000, {'type': 'text', 'text': 'Caching added.'}),
            ('prt_3', 'msg_2', T0_MS + 2000, tool_part),
        ]
        for part_id, message_id, created, data in parts:
            db.execute('INSERT INTO part VALUES (?, ?, ?, ?)', (part_id, message_id, created, json.dumps(data)))
        db.commit()
    finally:
        db.close()


def test_opencode_sqlite_sessions(home: Path) -> None:
    _create_opencode_db(home / '.local' / 'share' / 'opencode' / 'opencode.db')

    (session,) = asyncio.run(parse_opencode_sessions())

    assert session.id == 'ses_1'
    assert session.cwd == '/home/dev/cache'
    assert session.summary == 'Add a caching layer'
    assert session.lines == 2
    assert session.bytes == 0

    context = asyncio.run(extract_opencode_context(session))

    assert [m.content for m in context.recent_messages] == ['Add a caching layer', 'Caching added.']
    assert context.files_modified == ['/home/dev/cache/store.py']
    assert context.session.model == 'claude-sonnet-4'


def test_opencode_json_storage_fallback(home: Path) -> None:
    storage = home / '.local' / 'share' / 'opencode' / 'storage'
    write_json(storage / 'project' / 'prj_legacy.json', {'id': 'prj_legacy', 'worktree': '/home/dev/legacy'})
    write_json(
        storage / 'session' / 'prj_legacy' / 'ses_2.json',
        {
            'id': 'ses_2',
            'projectID': 'prj_legacy',
            'title': 'Fix flaky test',
            'time': {'created': T0_MS, 'updated': T0_MS + 5000},
        },
    )
    message = {'id': 'msg_a', 'role': 'user', 'time': {'created': T0_MS}}
    write_json(storage / 'message' / 'ses_2' / 'msg_a.json', message)
    write_json(storage / 'part' / 'msg_a' / 'prt_1.json', {'type': 'text', 'text': 'The retry test flakes on CI'})

    (session,) = asyncio.run(parse_opencode_sessions())

    assert session.id == 'ses_2'
    assert session.cwd == '/home/dev/legacy'
    assert session.summary == 'Fix flaky test'
    assert session.lines == 1

    context = asyncio.run(extract_opencode_context(session))
    assert [m.content for m in context.recent_messages] == ['The retry test flakes on CI']


# ==============================================================================
# Droid
# ==============================================================================


def _droid_events() -> list[dict[str, object]]:
    return [
        {'type': 'session_start', 'id': DROID_ID, 'cwd': '/home/dev/tool', 'sessionTitle': 'Tooling'},
        {
            'type': 'message',
            'timestamp': '2026-03-01T10:00:00Z',
            'message': {'role': 'user', 'content': [{'type': 'text', 'text': 'Wire up the CLI'}]},
        },
        {
            'type': 'message',
            'timestamp': '2026-03-01T10:01:00Z',
            'message': {
                'role': 'assistant',
                'content': [
                    {'type': 'text', 'text': 'Adding the entry point.'},
                    {'type': 'tool_use', 'id': 'd1', 'name': 'Execute', 'input': {'command': 'uv run tool --help'}},
                ],
            },
        },
        {
            'type': 'message',
            'timestamp': '2026-03-01T10:02:00Z',
            'message': {'role': 'user', 'content': [{'type': 'tool_result', 'tool_use_id': 'd1', 'content': 'usage'}]},
        },
        {
            'type': 'todo_state',
            'todos': {'todos': '1. [completed] Parse args\n2. [in_progress] Add help text\n3. [pending] Write docs'},
        },
    ]


def test_droid_sessions(home: Path) -> None:
    workspace = home / '.factory' / 'sessions' / '-home-dev-tool'
    write_jsonl(workspace / f'{DROID_ID}.jsonl', _droid_events())
    write_json(
        workspace / f'{DROID_ID}.settings.json',
        {'model': 'claude-opus-4', 'tokenUsage': {'inputTokens': 100, 'outputTokens': 50, 'cacheReadTokens': 10}},
    )

    (session,) = asyncio.run(parse_droid_sessions())

    assert session.id == DROID_ID
    assert session.cwd == '/home/dev/tool'
    assert session.summary == 'Wire up the CLI'
    assert session.model == 'claude-opus-4'
    assert session.updated_at.minute == 2

    context = asyncio.run(extract_droid_context(session))

    assert context.pending_tasks == ['Add help text', 'Write docs']
    assert _tool_counts(context) == {'shell': 1}
    assert context.session_notes is not None
    assert context.session_notes.token_usage is not None
    assert context.session_notes.token_usage.output == 50
    assert context.session_notes.cache_tokens is not None
    assert context.session_notes.cache_tokens.read == 10


def test_droid_todos_as_plain_string() -> None:
    events = [
        {'type': 'todo_state', 'todos': '1. [pending] stale'},
        {'type': 'todo_state', 'todos': '1. [pending] Ship it\n2. [completed] Review'},
    ]
    assert pending_tasks_from_todos(events) == ['Ship it']
    assert pending_tasks_from_todos([]) == []


# ==============================================================================
# Cursor
# ==============================================================================


def _write_cursor_store(home: Path, project: Path) -> None:
    project.mkdir(parents=True, exist_ok=True)
    slug = str(project).replace('/', '-').lstrip('-')
    transcript = home / '.cursor' / 'projects' / slug / 'agent-transcripts' / CURSOR_ID / f'{CURSOR_ID}.jsonl'
    write_jsonl(
        transcript,
        [
            {
                'role': 'user',
                'message': {'content': [{'type': 'text', 'text': '<user_query>\nRename the module\n</user_query>'}]},
            },
            {
                'role': 'assistant',
                'message': {
                    'content': [
                        {'type': 'text', 'text': 'Renamed it.'},
                        {
                            'type': 'tool_use',
                            'id': 'w1',
                            'name': 'Write',
                            'input': {'file_path': f'{project}/renamed.py', 'content': 'pass'},
                        },
                    ]
                },
            },
        ],
    )


def test_cursor_sessions(home: Path, tmp_path: Path) -> None:
    project = tmp_path / 'work' / 'my-repo'
    _write_cursor_store(home, project)

    (session,) = asyncio.run(parse_cursor_sessions())

    assert session.id == CURSOR_ID
    assert session.cwd == str(project)
    assert session.summary == 'Rename the module'

    context = asyncio.run(extract_cursor_context(session))

    assert [m.content for m in context.recent_messages] == ['Rename the module', 'Renamed it.']
    assert context.files_modified == [f'{project}/renamed.py']


# ==============================================================================
# Cross-tool handoff
# ==============================================================================


def _write_store(source: str, home: Path, tmp_path: Path) -> None:
    if source == 'claude':
        write_jsonl(home / '.claude' / 'projects' / '-home-dev-project' / f'{CLAUDE_ID}.jsonl', _claude_records())
    elif source == 'codex':
        sessions = home / '.codex' / 'sessions' / '2026' / '03' / '01'
        write_jsonl(sessions / f'rollout-2026-03-01T10-00-00-{CODEX_ID}.jsonl', _codex_records())
    elif source == 'copilot':
        _write_copilot_store(home)
    elif source == 'gemini':
        _write_gemini_store(home)
    elif source == 'opencode':
        _create_opencode_db(home / '.local' / 'share' / 'opencode' / 'opencode.db')
    elif source == 'droid':
        write_jsonl(home / '.factory' / 'sessions' / '-home-dev-tool' / f'{DROID_ID}.jsonl', _droid_events())
    else:
        _write_cursor_store(home, tmp_path / 'work' / 'my-repo')


HANDOFF_MARKERS = [
    '# Session Handoff Context',
    '## Session Overview',
    '| **Source** |',
    '| **Session ID** |',
    '| **Working Directory** |',
    '| **Last Active** |',
    '## Recent Conversation',
    '### 👤 User',
    'You are continuing this session',
]


@pytest.mark.parametrize('source', list(ADAPTERS))
def test_every_source_renders_a_complete_handoff(home: Path, tmp_path: Path, source: str) -> None:
    _write_store(source, home, tmp_path)
    adapter = ADAPTERS[source]

    (session,) = asyncio.run(adapter.parse_sessions())
    context = asyncio.run(extract_context(session))
    prompt = build_inline_prompt(context)

    for marker in HANDOFF_MARKERS:
        assert marker in context.markdown, marker
    assert f'| **Source** | {source_label(source)} |' in context.markdown
    assert session.id in context.markdown
    assert context.markdown.index('## Session Overview') < context.markdown.index('## Recent Conversation')
    assert prompt.startswith(f"I'm continuing a coding session from **{source_label(source)}**")
    assert prompt.endswith(context.markdown)
