"""
Shared type definitions for the continues package.

Centralizes common type annotations used across multiple modules.
"""

from datetime import datetime
from typing import Annotated, Literal

import pydantic

# Pydantic-enhanced datetime for JSON serialization (allows string→datetime conversion)
JsonDatetime = Annotated[datetime, pydantic.Field(strict=False)]

# Every tool with a registered adapter
SessionSource = Literal['claude', 'codex', 'copilot', 'gemini', 'opencode', 'droid', 'cursor']

# Verbosity levels, least to most verbose
LogLevel = Literal['silent', 'error', 'warn', 'info', 'debug']
