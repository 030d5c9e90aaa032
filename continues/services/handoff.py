"""
Handoff service.

Decides how a session continues: natively in its own tool, or in another tool
with the extracted context as the opening prompt. Produces a LaunchPlan; the
launcher executes it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import attrs

from continues.exceptions import StorageError
from continues.protocols import LoggerProtocol, NullLogger
from continues.registry import get_adapter
from continues.schemas.flags import FlagSource, ForwardResolution
from continues.schemas.session import SessionContext, UnifiedSession
from continues.services.flag_sources import collect_flag_sources
from continues.services.forwarding import format_forward_args, resolve_forwarding
from continues.services.index import SessionIndexService
from continues.services.rendering import HandoffMode, source_label

__all__ = [
    'HANDOFF_FILENAME',
    'LaunchPlan',
    'build_inline_prompt',
    'build_reference_prompt',
    'extract_context',
    'plan_launch',
    'resolve_target_forwarding',
    'resume_command',
    'write_handoff_file',
]

HANDOFF_FILENAME: Final = '.continues-handoff.md'


@attrs.define(frozen=True)
class LaunchPlan:
    """A fully decided process launch."""

    binary: str
    args: list[str]
    cwd: str
    prompt_file: Path | None = None  # Handoff document written for the target
    native: bool = True


async def extract_context(
    session: UnifiedSession,
    mode: HandoffMode | str = HandoffMode.INLINE,
    logger: LoggerProtocol | None = None,
) -> SessionContext:
    """
    Extract a session's context through its tool's adapter.

    Raises:
        UnknownSourceError: If the session's source has no adapter
    """
    return await get_adapter(session.source).extract_context(session, mode, logger)


def build_inline_prompt(context: SessionContext) -> str:
    """The whole handoff document behind a one-line introduction."""
    label = source_label(context.session.source)
    return f"I'm continuing a coding session from **{label}**. Here's the full context:\n\n---\n\n{context.markdown}"


def build_reference_prompt(session: UnifiedSession, handoff_path: Path | str) -> str:
    """A short prompt that points the target tool at the handoff file."""
    label = source_label(session.source)
    filename = Path(handoff_path).name
    lines = [
        '# 🔄 Session Handoff',
        '',
        f'Picking up a coding session from **{label}**. The full context is in `{filename}`.',
        '',
        '| Detail | Value |',
        '|--------|-------|',
        f'| Previous tool | {label} |',
        f'| Working directory | `{session.cwd}` |',
        f'| Context file | `{filename}` |',
    ]
    if session.summary:
        lines.append(f'| Last task | {session.summary[:80]} |')
    lines.extend(['', f'Read `{filename}` first, then continue the work.'])
    return '\n'.join(lines)


async def write_handoff_file(cwd: str, markdown: str, logger: LoggerProtocol | None = None) -> Path | None:
    """
    Write the handoff document into the project directory.

    Sandboxed targets can only read inside the project, so the file lives
    there. Failure is logged, not raised: the inline prompt still carries the
    context.

    Returns:
        Path written, or None when the directory is not writable
    """
    logger = logger or NullLogger()
    path = Path(cwd or '.') / HANDOFF_FILENAME
    try:
        path.write_text(markdown, encoding='utf-8')
    except OSError as e:
        await logger.warning(f'Could not write handoff file {path}: {e}')
        return None
    return path


def resolve_target_forwarding(
    target: str,
    cli_tokens: Sequence[str] = (),
    config: Mapping[str, Any] | None = None,
    interactive: Mapping[str, Any] | None = None,
) -> ForwardResolution:
    """Resolve forward flags from every source against the target's mapper."""
    sources: dict[FlagSource, list[str]] = collect_flag_sources(cli_tokens, config, interactive)
    return resolve_forwarding(sources, get_adapter(target).map_handoff_flags)


def resume_command(
    session: UnifiedSession,
    target: str | None = None,
    forwarding: ForwardResolution | None = None,
) -> str:
    """
    Display form of the command that continues a session.

    Same tool: the tool's own resume command. Another tool: the equivalent
    ``continues resume`` invocation with the resolved forward arguments.
    """
    target = target or session.source
    if target == session.source:
        return get_adapter(session.source).resume_command_display(session)

    command = f'continues resume {session.id} --in {target}'
    if forwarding and forwarding.extra_args:
        command += f' {format_forward_args(forwarding.extra_args)}'
    return command


async def plan_launch(
    session: UnifiedSession,
    target: str | None = None,
    mode: HandoffMode | str = HandoffMode.INLINE,
    forwarding: ForwardResolution | None = None,
    index: SessionIndexService | None = None,
    logger: LoggerProtocol | None = None,
) -> LaunchPlan:
    """
    Decide the binary, arguments and working directory for continuing a session.

    Native resumes use the source tool's resume arguments; forward flags only
    apply across tools. Cross-tool handoffs extract the context, write the
    handoff file into the project, cache it in the index home, and pass the
    inline or reference prompt.

    Raises:
        UnknownSourceError: If the source or target has no adapter
    """
    logger = logger or NullLogger()
    source_adapter = get_adapter(session.source)
    target = target or session.source

    if target == session.source:
        return LaunchPlan(
            binary=source_adapter.binary_name,
            args=source_adapter.native_resume_args(session),
            cwd=session.cwd,
        )

    target_adapter = get_adapter(target)
    context = await extract_context(session, mode, logger)
    handoff_path = await write_handoff_file(session.cwd, context.markdown, logger)
    if index is not None:
        try:
            index.save_context(context)
        except StorageError as e:
            await logger.warning(str(e))

    if HandoffMode(mode) is HandoffMode.REFERENCE:
        prompt = build_reference_prompt(session, handoff_path or HANDOFF_FILENAME)
    else:
        prompt = build_inline_prompt(context)

    extra_args = forwarding.extra_args if forwarding else []
    return LaunchPlan(
        binary=target_adapter.binary_name,
        args=[*extra_args, *target_adapter.cross_tool_args(prompt, session.cwd)],
        cwd=session.cwd,
        prompt_file=handoff_path,
        native=False,
    )
