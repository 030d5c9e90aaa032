"""
Agent CLI launcher.

Checks which agent binaries are installed and hands the terminal over to the
chosen one.
"""

from __future__ import annotations

import os
import shutil

from continues.exceptions import ToolNotAvailableError
from continues.registry import ADAPTERS
from continues.services.handoff import LaunchPlan

__all__ = ['available_tools', 'is_tool_available', 'launch']


def is_tool_available(binary: str) -> bool:
    return shutil.which(binary) is not None


def available_tools() -> list[str]:
    """Registered tools whose binary is on PATH, in registry order."""
    return [name for name, adapter in ADAPTERS.items() if is_tool_available(adapter.binary_name)]


def launch(plan: LaunchPlan) -> None:
    """
    Launch the planned command, replacing the current process.

    Uses os.execvp() for clean process handoff - the agent owns the terminal
    from here, so this function never returns.

    Args:
        plan: Binary, arguments and working directory to launch

    Raises:
        ToolNotAvailableError: If the binary is not found in PATH
    """
    if not is_tool_available(plan.binary):
        raise ToolNotAvailableError(plan.binary)

    if plan.cwd and os.path.isdir(plan.cwd):
        os.chdir(plan.cwd)

    os.execvp(plan.binary, [plan.binary, *plan.args])
