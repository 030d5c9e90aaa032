"""
Launch-flag occurrence and resolution models.
"""

from __future__ import annotations

from typing import Literal

import pydantic

from continues.base_model import StrictModel

__all__ = [
    'FLAG_SOURCE_ORDER',
    'FlagKey',
    'FlagMapping',
    'FlagOccurrence',
    'FlagSource',
    'ForwardResolution',
]

FlagKey = Literal[
    'model',
    'yolo',
    'force',
    'allowAll',
    'fullAuto',
    'dangerouslyBypass',
    'dangerouslySkipPermissions',
    'sandbox',
    'askForApproval',
    'permissionMode',
    'approvalMode',
    'plan',
    'mode',
    'addDir',
    'includeDirectories',
    'allowedTools',
    'disallowedTools',
    'allowTool',
    'denyTool',
    'agent',
    'debug',
    'logLevel',
    'mcpConfig',
    'allowedMcpServerNames',
    'additionalMcpConfig',
    'approveMcps',
    'cd',
    'workspace',
    'config',
]

FlagSource = Literal['cli', 'config', 'interactive']

# Arrival order; later sources win under "most recent occurrence wins"
FLAG_SOURCE_ORDER: tuple[FlagSource, ...] = ('config', 'interactive', 'cli')


class FlagOccurrence(StrictModel):
    """One mention of a launch flag from one source, before resolution."""

    key: FlagKey
    value: str | bool
    source: FlagSource
    source_flag: str  # Literal spelling, e.g. '-m' or '--model'
    seq: int  # Arrival order across all sources
    indices: tuple[int, ...]  # Token positions within the source's token list


class FlagMapping(StrictModel):
    """What one target mapper decided."""

    mapped_args: list[str] = pydantic.Field(default_factory=list)
    warnings: list[str] = pydantic.Field(default_factory=list)


class ForwardResolution(StrictModel):
    """Final launch arguments for one target tool.

    ``extra_args`` is ``mapped_args`` followed by every raw token no mapper consumed.
    """

    mapped_args: list[str]
    passthrough_args: list[str]
    extra_args: list[str]
    warnings: list[str]
    unresolved: list[FlagOccurrence] = pydantic.Field(default_factory=list)
