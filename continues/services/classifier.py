"""
Tool-name classification.

Maps a raw tool name from any supported agent to one of the fixed tool
categories, or None for bookkeeping tools that are never summarized.
Unrecognized names fall into the ``mcp`` bucket rather than being dropped.
"""

from __future__ import annotations

from typing import Final

from continues.schemas.samples import ToolCategory

__all__ = [
    'ASK_TOOLS',
    'DEFAULT_SAMPLE_LIMIT',
    'EDIT_TOOLS',
    'FETCH_TOOLS',
    'GLOB_TOOLS',
    'GREP_TOOLS',
    'READ_TOOLS',
    'SAMPLE_LIMITS',
    'SEARCH_TOOLS',
    'SHELL_TOOLS',
    'SKIP_TOOLS',
    'TASK_OUTPUT_TOOLS',
    'TASK_TOOLS',
    'WRITE_TOOLS',
    'classify',
    'is_mcp_style',
    'sample_limit',
]

# ==============================================================================
# Static name sets (exact match)
# ==============================================================================

SHELL_TOOLS: Final = frozenset(
    {
        'Bash',
        'bash',
        'terminal',
        'run_terminal_command',
        'exec_command',
        'shell_command',
        'run_shell_command',
        'Execute',
        'shell',
    }
)
READ_TOOLS: Final = frozenset({'Read', 'ReadFile', 'read_file', 'read_many_files', 'view', 'read'})
WRITE_TOOLS: Final = frozenset({'Write', 'WriteFile', 'write_file', 'Create', 'create_file', 'create', 'write'})
EDIT_TOOLS: Final = frozenset(
    {
        'Edit',
        'EditFile',
        'edit_file',
        'MultiEdit',
        'replace',
        'str_replace',
        'apply_diff',
        'apply_patch',
        'ApplyPatch',
        'edit',
        'patch',
    }
)
GREP_TOOLS: Final = frozenset({'Grep', 'grep', 'search_file_content', 'codebase_search'})
GLOB_TOOLS: Final = frozenset({'Glob', 'glob', 'list_directory', 'file_search', 'LS', 'ls', 'list'})
SEARCH_TOOLS: Final = frozenset({'WebSearch', 'web_search', 'google_web_search', 'web_search_call', 'websearch'})
FETCH_TOOLS: Final = frozenset({'WebFetch', 'web_fetch', 'webfetch'})
TASK_TOOLS: Final = frozenset({'Task', 'task'})
TASK_OUTPUT_TOOLS: Final = frozenset({'TaskOutput'})
ASK_TOOLS: Final = frozenset({'AskUserQuestion', 'request_user_input'})

# Internal bookkeeping - never summarized
SKIP_TOOLS: Final = frozenset(
    {
        'TaskStop',
        'ExitPlanMode',
        'TodoWrite',
        'TodoRead',
        'todowrite',
        'todoread',
        'update_plan',
        'view_image',
        'write_todos',
    }
)

_CATEGORY_SETS: Final[tuple[tuple[frozenset[str], ToolCategory], ...]] = (
    (SHELL_TOOLS, 'shell'),
    (READ_TOOLS, 'read'),
    (WRITE_TOOLS, 'write'),
    (EDIT_TOOLS, 'edit'),
    (GREP_TOOLS, 'grep'),
    (GLOB_TOOLS, 'glob'),
    (SEARCH_TOOLS, 'search'),
    (FETCH_TOOLS, 'fetch'),
    (TASK_TOOLS, 'task'),
    (TASK_OUTPUT_TOOLS, 'task'),
    (ASK_TOOLS, 'ask'),
)

# ==============================================================================
# Sample limits (fixed policy, not configurable per call)
# ==============================================================================

SAMPLE_LIMITS: Final[dict[ToolCategory, int]] = {
    'shell': 8,
    'write': 5,
    'edit': 5,
    'read': 20,
    'grep': 10,
    'glob': 10,
    'search': 10,
    'fetch': 10,
    'task': 5,
    'ask': 5,
}
DEFAULT_SAMPLE_LIMIT: Final = 5


def is_mcp_style(name: str) -> bool:
    """MCP tools are namespaced: mcp__server__tool, server___tool, or server-tool."""
    return name.startswith('mcp__') or '___' in name or '-' in name


def classify(name: str) -> ToolCategory | None:
    """
    Classify a raw tool name.

    Args:
        name: Tool name exactly as the agent logged it

    Returns:
        The tool category, or None for bookkeeping tools that should be skipped.
        Unknown names are classified as 'mcp' so no invocation disappears.
    """
    if name in SKIP_TOOLS:
        return None
    for names, category in _CATEGORY_SETS:
        if name in names:
            return category
    return 'mcp'


def sample_limit(category: str) -> int:
    """Maximum retained samples for a category."""
    return SAMPLE_LIMITS.get(category, DEFAULT_SAMPLE_LIMIT)  # type: ignore[call-overload]
