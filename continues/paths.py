"""
Path decoding utilities for slug-named session directories.

Droid and Cursor store sessions under directories named after the project
path with separators replaced by dashes:
- `/` -> `-`
- `.` -> `-`

The encoding is LOSSY: `-` in the slug may have been `/`, `.` or a literal
dash. When a session record carries its own `cwd`, prefer that; these helpers
are the fallback for formats that don't.
"""

from __future__ import annotations

import os

__all__ = ['cwd_from_slug', 'matches_cwd']


def cwd_from_slug(slug: str) -> str:
    """
    Recover a working directory from a slug directory name.

    Tries every reading of each dash (path separator, dot, literal dash),
    depth-first in that order, and returns the first candidate that exists on
    disk. Falls back to treating every dash as a separator.

    Args:
        slug: Directory name, with or without a leading dash

    Returns:
        Absolute path string

    Examples:
        >>> cwd_from_slug('Users-alice-Sites-dzcm-test')  # when /Users/alice/Sites/dzcm.test exists
        '/Users/alice/Sites/dzcm.test'
    """
    parts = slug.lstrip('-').split('-')

    def resolve(index: int, segments: list[str]) -> str | None:
        if index >= len(parts):
            candidate = '/' + '/'.join(segments)
            return candidate if os.path.exists(candidate) else None

        part = parts[index]
        found = None
        # A separator seals the segments so far; skip prefixes that aren't directories
        if not segments or os.path.isdir('/' + '/'.join(segments)):
            found = resolve(index + 1, [*segments, part])
        if found or not segments:
            return found

        *rest, last = segments
        return resolve(index + 1, [*rest, f'{last}.{part}']) or resolve(index + 1, [*rest, f'{last}-{part}'])

    return resolve(0, []) or '/' + slug.lstrip('-').replace('-', '/')


def matches_cwd(session_cwd: str, target_dir: str) -> bool:
    """
    Whether a session's cwd is target_dir or one of its subdirectories.

    Empty values and a root (`/`) target never match.
    """
    if not session_cwd or not target_dir:
        return False
    target = target_dir.rstrip('/')
    if not target:
        return False
    session = session_cwd.rstrip('/')
    return session == target or session.startswith(target + '/')
