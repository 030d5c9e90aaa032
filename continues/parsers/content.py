"""
Text helpers for message content shared across readers.

Anthropic-style content is either a string or a list of typed blocks; these
helpers flatten it, filter injected system text, and derive repo names and
one-line summaries.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Final

__all__ = [
    'clean_summary',
    'clean_user_query_text',
    'extract_repo',
    'extract_repo_from_cwd',
    'extract_repo_from_git_url',
    'extract_text_from_blocks',
    'is_real_user_message',
    'is_system_content',
]

_SYSTEM_PREFIXES: Final = (
    '<system-reminder>',
    '<permissions',
    '<environment_context>',
    '<external_links>',
    '<image_files>',
    '# AGENTS.md',
)

_GIT_URL_RE: Final = re.compile(r'[/:]([\w-]+)/([\w.-]+?)(?:\.git)?$')
_USER_QUERY_RE: Final = re.compile(r'<user_query>\s*(.*?)\s*</user_query>', re.DOTALL)
_WHITESPACE_RE: Final = re.compile(r'\s+')


def extract_text_from_blocks(content: Any) -> str:
    """Text of a string or of the ``text`` blocks in a block list, joined by newlines."""
    if not content:
        return ''
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ''
    return '\n'.join(
        block['text']
        for block in content
        if isinstance(block, Mapping)
        and block.get('type', 'text') == 'text'
        and isinstance(block.get('text'), str)
        and block['text']
    )


def is_system_content(text: str) -> bool:
    """Whether text was injected by the harness rather than typed by the user."""
    return text.startswith(_SYSTEM_PREFIXES)


def is_real_user_message(text: str) -> bool:
    """
    Whether a user message is real input.

    Excludes XML-tagged meta content, slash commands, and earlier handoff
    documents pasted in as prompts.
    """
    if not text:
        return False
    return not text.startswith(('<', '/')) and 'Session Handoff' not in text


def extract_repo_from_git_url(git_url: str | None) -> str:
    """``owner/repo`` from an HTTPS or SSH remote URL; empty when unrecognized."""
    if not git_url:
        return ''
    match = _GIT_URL_RE.search(git_url)
    return f'{match.group(1)}/{match.group(2)}' if match else ''


def clean_user_query_text(text: str) -> str:
    """Inner text of Cursor's ``<user_query>`` wrapper, or the text unchanged."""
    match = _USER_QUERY_RE.search(text)
    return match.group(1).strip() if match else text


def clean_summary(text: str, max_chars: int = 50) -> str:
    """Collapse whitespace to single spaces and clip to a one-line summary."""
    return _WHITESPACE_RE.sub(' ', text).strip()[:max_chars]


def extract_repo_from_cwd(cwd: str | None) -> str:
    """Last two path components of a working directory, joined with ``/``."""
    if not cwd:
        return ''
    parts = [part for part in cwd.split('/') if part]
    return '/'.join(parts[-2:])


def extract_repo(git_url: str | None = None, cwd: str | None = None) -> str:
    """Repo identifier from a git URL when recognizable, else from the cwd."""
    return extract_repo_from_git_url(git_url) or extract_repo_from_cwd(cwd)
