"""Session readers, one module per supported agent."""

from continues.parsers.claude import extract_claude_context, parse_claude_sessions
from continues.parsers.codex import extract_codex_context, parse_codex_sessions
from continues.parsers.copilot import extract_copilot_context, parse_copilot_sessions
from continues.parsers.cursor import extract_cursor_context, parse_cursor_sessions
from continues.parsers.droid import extract_droid_context, parse_droid_sessions
from continues.parsers.gemini import extract_gemini_context, parse_gemini_sessions
from continues.parsers.opencode import extract_opencode_context, parse_opencode_sessions

__all__ = [
    'extract_claude_context',
    'extract_codex_context',
    'extract_copilot_context',
    'extract_cursor_context',
    'extract_droid_context',
    'extract_gemini_context',
    'extract_opencode_context',
    'parse_claude_sessions',
    'parse_codex_sessions',
    'parse_copilot_sessions',
    'parse_cursor_sessions',
    'parse_droid_sessions',
    'parse_gemini_sessions',
    'parse_opencode_sessions',
]
