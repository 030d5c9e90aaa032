"""
Reader-neutral tool invocation records.

Readers emit ToolInvocation (what was called) and ToolResult (what came back,
keyed by call ID). Formats that store results inline set ``result`` directly.
"""

from __future__ import annotations

from typing import Any

import pydantic

from continues.base_model import StrictModel
from continues.schemas.samples import DiffStats

__all__ = [
    'ToolInvocation',
    'ToolResult',
]


class ToolInvocation(StrictModel):
    name: str
    arguments: dict[str, Any] = pydantic.Field(default_factory=dict)
    call_id: str | None = None
    result: str | None = None  # Inline result; takes precedence over the call-ID lookup
    is_error: bool = False

    # Pre-rendered file change supplied by tools that log their own diffs
    file_diff: str | None = None
    diff_stats: DiffStats | None = None
    is_new_file: bool | None = None


class ToolResult(StrictModel):
    call_id: str
    text: str
    is_error: bool = False
