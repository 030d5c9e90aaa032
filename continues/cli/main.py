#!/usr/bin/env python3
"""
Command-line interface for continues.

Lists sessions from every supported agent and resumes them, natively or in a
different agent with the extracted context as the opening prompt.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections import Counter
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import attrs
import typer

from continues.cli.logger import CLILogger, level_from_flags
from continues.config.base import find_config_file, load_config_file
from continues.config.cli import settings
from continues.exceptions import ContinuesError, SessionNotFoundError
from continues.launcher import available_tools, launch
from continues.paths import matches_cwd
from continues.registry import ADAPTERS, get_adapter
from continues.schemas.flags import ForwardResolution
from continues.schemas.session import UnifiedSession
from continues.services.handoff import extract_context, plan_launch, resolve_target_forwarding, resume_command
from continues.services.index import SessionIndexService
from continues.services.rendering import HandoffMode

app = typer.Typer(
    name='continues',
    help='Resume AI coding sessions across Claude Code, Codex, Copilot, Gemini, OpenCode, Droid and Cursor',
    add_completion=False,
)


@attrs.define(frozen=True)
class CLIState:
    """Global options shared by every command."""

    logger: CLILogger
    config_path: Path | None = None


@app.callback()
def _global_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, '--verbose', help='Show info-level logs'),
    debug: bool = typer.Option(False, '--debug', help='Show debug-level logs'),
    config: Path | None = typer.Option(None, '--config', help='Path to .continues.yml config file'),
) -> None:
    level = level_from_flags(verbose=verbose, debug=debug or settings.DEBUG)
    ctx.obj = CLIState(logger=CLILogger(level), config_path=config)


def _state(ctx: typer.Context) -> CLIState:
    if isinstance(ctx.obj, CLIState):
        return ctx.obj
    return CLIState(logger=CLILogger(level_from_flags(debug=settings.DEBUG)))


def _index_service(state: CLIState) -> SessionIndexService:
    return SessionIndexService(home=settings.HOME, ttl_seconds=settings.INDEX_TTL_SECONDS, logger=state.logger)


def _load_config(state: CLIState) -> dict[str, Any]:
    if state.config_path is not None and not state.config_path.is_file():
        raise ContinuesError(f'Config file not found: {state.config_path}')
    return load_config_file(state.config_path or find_config_file())


def _handoff_mode(reference: bool, config: Mapping[str, Any]) -> HandoffMode:
    """--reference wins, then the config file's ``mode``, then CONTINUES_HANDOFF_MODE."""
    if reference:
        return HandoffMode.REFERENCE
    value = config.get('mode') or settings.HANDOFF_MODE
    try:
        return HandoffMode(value)
    except ValueError:
        raise ContinuesError(f'Invalid handoff mode "{value}" (expected inline or reference)') from None


def _validate_source(source: str | None) -> str | None:
    if source is not None:
        get_adapter(source)
    return source


def format_session(session: UnifiedSession) -> str:
    """One fixed-width line: source, date, repo, branch, summary, short ID."""
    tag = f'[{session.source}]'.ljust(10)
    date = session.updated_at.strftime('%Y-%m-%d %H:%M')
    repo = (session.repo or session.cwd.rstrip('/').rsplit('/', 1)[-1])[:20].ljust(20)
    branch = (session.branch or '')[:15].ljust(15)
    summary = (session.summary or '')[:40].ljust(40)
    return f'{tag} {date}  {repo} {branch} {summary} {session.id[:12]}'


def _print_error(e: Exception) -> None:
    typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)


# ==============================================================================
# list
# ==============================================================================


@app.command('list')
def list_sessions(
    ctx: typer.Context,
    source: str | None = typer.Option(None, '--source', '-s', help='Only sessions from this tool'),
    limit: int = typer.Option(50, '--limit', '-n', min=1, help='Maximum sessions to show'),
    as_json: bool = typer.Option(False, '--json', help='Output as a JSON array'),
    as_jsonl: bool = typer.Option(False, '--jsonl', help='Output as JSONL'),
    here: bool = typer.Option(False, '--here', help='Only sessions started in the current directory or below'),
    rebuild: bool = typer.Option(False, '--rebuild', help='Force rebuild of the session index'),
) -> None:
    """List recent sessions from every tool, newest first."""
    asyncio.run(_list_async(_state(ctx), source, limit, as_json, as_jsonl, rebuild, here))


async def _list_async(
    state: CLIState,
    source: str | None,
    limit: int,
    as_json: bool,
    as_jsonl: bool,
    rebuild: bool,
    here: bool = False,
) -> None:
    """Async implementation of list command."""
    try:
        index = _index_service(state)
        if _validate_source(source):
            sessions = await index.sessions_by_source(source, force_rebuild=rebuild)
        else:
            sessions = await index.all_sessions(force_rebuild=rebuild)
    except ContinuesError as e:
        _print_error(e)
        raise typer.Exit(1)

    if here:
        cwd = str(Path.cwd())
        sessions = [session for session in sessions if matches_cwd(session.cwd, cwd)]

    shown = sessions[:limit]
    if as_json:
        typer.echo(json.dumps([session.model_dump(mode='json') for session in shown], indent=2))
        return
    if as_jsonl:
        for session in shown:
            typer.echo(session.model_dump_json())
        return

    if not sessions:
        typer.secho('No sessions found.', fg=typer.colors.YELLOW)
        typer.echo('Session stores searched:')
        for adapter in ADAPTERS.values():
            typer.echo(f'  {adapter.label}: {adapter.storage_path}')
        return

    typer.secho(f'Found {len(sessions)} sessions (showing {len(shown)}):', dim=True)
    typer.echo()
    for session in shown:
        typer.echo(format_session(session))


# ==============================================================================
# resume
# ==============================================================================


@app.command(context_settings={'allow_extra_args': True, 'ignore_unknown_options': True})
def resume(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help='Session ID (full or prefix)'),
    target: str | None = typer.Option(None, '--in', '-i', help="Target tool (default: the session's own tool)"),
    reference: bool = typer.Option(
        False, '--reference', help='Point the target at a handoff file instead of inlining the context'
    ),
    dry_run: bool = typer.Option(False, '--dry-run', help='Show the command without launching'),
) -> None:
    """Resume a session, natively or in another tool.

    Unknown options are forwarded to the target tool, translated to its own
    flag names where they mean the same thing:

        continues resume 3f2a91 --in codex --yolo --model o3
    """
    asyncio.run(_resume_async(_state(ctx), session_id, target, reference, dry_run, ctx.args))


async def _countdown(seconds: int) -> None:
    """Pause after forwarding warnings so they can be read before the target takes over."""
    if seconds <= 0 or not sys.stdout.isatty():
        return
    for remaining in range(seconds, 0, -1):
        typer.secho(f'\rContinuing in {remaining}s... ', fg=typer.colors.YELLOW, nl=False)
        await asyncio.sleep(1)
    typer.echo('\r' + ' ' * 24 + '\r', nl=False)


async def _resume_async(
    state: CLIState,
    session_id: str,
    target: str | None,
    reference: bool,
    dry_run: bool,
    extra_args: Sequence[str],
) -> None:
    """Async implementation of resume command."""
    logger = state.logger
    index = _index_service(state)

    try:
        config = _load_config(state)
        mode = _handoff_mode(reference, config)

        session = await index.find_session(session_id)
        if session is None:
            similar = await index.similar_sessions(session_id)
            _print_error(SessionNotFoundError(session_id))
            if similar:
                typer.secho('\nDid you mean one of these?', fg=typer.colors.YELLOW)
                for candidate in similar:
                    typer.echo(f'  {format_session(candidate)}')
            raise typer.Exit(1)

        target = _validate_source(target) or session.source
        forwarding: ForwardResolution | None = None
        if target != session.source:
            forwarding = resolve_target_forwarding(target, extra_args, config)
            for warning in forwarding.warnings:
                typer.secho(f'Warning: {warning}', fg=typer.colors.YELLOW, err=True)
            if forwarding.warnings and not dry_run:
                await _countdown(settings.FORWARDING_COUNTDOWN)
        elif extra_args:
            await logger.warning(f'Forward flags are ignored for native resume: {" ".join(extra_args)}')

        typer.echo(f'Session: {format_session(session)}')
        typer.echo('Command: ', nl=False)
        typer.secho(resume_command(session, target, forwarding), fg=typer.colors.CYAN)
        typer.echo()

        plan = await plan_launch(session, target, mode, forwarding, index=index, logger=logger)
        if plan.prompt_file:
            await logger.info(f'Handoff file: {plan.prompt_file}')

        if dry_run:
            typer.secho('✓ Dry run: not launching', fg=typer.colors.GREEN)
            typer.echo(f'  Binary: {plan.binary}')
            typer.echo(f'  Working directory: {plan.cwd}')
            return

        launch(plan)
        # Note: launch uses execvp, so we never reach here

    except (ContinuesError, OSError) as e:
        _print_error(e)
        raise typer.Exit(1)


# ==============================================================================
# scan / rebuild
# ==============================================================================


def _print_counts(sessions: Sequence[UnifiedSession], bars: bool = True) -> None:
    counts = Counter(session.source for session in sessions)
    for source, count in counts.most_common():
        bar = '█' * min(50, count // 10) if bars else ''
        typer.echo(f'  {source.ljust(8)}: {str(count).rjust(4)} {bar}'.rstrip())


@app.command()
def scan(
    ctx: typer.Context,
    rebuild: bool = typer.Option(False, '--rebuild', help='Force rebuild of the session index'),
) -> None:
    """Show how many sessions were discovered per tool."""
    asyncio.run(_scan_async(_state(ctx), rebuild))


async def _scan_async(state: CLIState, rebuild: bool) -> None:
    """Async implementation of scan command."""
    try:
        sessions = await _index_service(state).all_sessions(force_rebuild=rebuild)
    except ContinuesError as e:
        _print_error(e)
        raise typer.Exit(1)

    typer.secho(f'Total sessions: {len(sessions)}', bold=True)
    typer.echo()
    _print_counts(sessions)

    installed = available_tools()
    typer.echo()
    typer.echo(f'Installed tools: {", ".join(installed) if installed else "none"}')


@app.command()
def rebuild(ctx: typer.Context) -> None:
    """Rebuild the session index now."""
    asyncio.run(_rebuild_async(_state(ctx)))


async def _rebuild_async(state: CLIState) -> None:
    """Async implementation of rebuild command."""
    try:
        sessions = await _index_service(state).build(force=True)
    except ContinuesError as e:
        _print_error(e)
        raise typer.Exit(1)

    typer.secho(f'✓ Index rebuilt: {len(sessions)} sessions', fg=typer.colors.GREEN)
    _print_counts(sessions, bars=False)


# ==============================================================================
# dump
# ==============================================================================


@app.command()
def dump(
    ctx: typer.Context,
    source: str = typer.Argument(..., help='Tool name, or "all"'),
    directory: Path = typer.Argument(..., help='Directory to write one file per session into'),
    as_json: bool = typer.Option(False, '--json', help='Write session metadata as JSON instead of markdown'),
    limit: int | None = typer.Option(None, '--limit', min=1, help='Maximum sessions to export'),
    reference: bool = typer.Option(False, '--reference', help='Render with the roomier reference caps'),
    rebuild: bool = typer.Option(False, '--rebuild', help='Force rebuild of the session index'),
) -> None:
    """Export sessions to files: <source>_<id>.md (handoff document) or .json."""
    asyncio.run(_dump_async(_state(ctx), source, directory, as_json, limit, reference, rebuild))


async def _dump_async(
    state: CLIState,
    source: str,
    directory: Path,
    as_json: bool,
    limit: int | None,
    reference: bool,
    rebuild: bool,
) -> None:
    """Async implementation of dump command."""
    logger = state.logger
    mode = HandoffMode.REFERENCE if reference else HandoffMode.INLINE

    try:
        index = _index_service(state)
        if source == 'all':
            sessions = await index.all_sessions(force_rebuild=rebuild)
        else:
            _validate_source(source)
            sessions = await index.sessions_by_source(source, force_rebuild=rebuild)
        directory = directory.resolve()
        directory.mkdir(parents=True, exist_ok=True)
    except (ContinuesError, OSError) as e:
        _print_error(e)
        raise typer.Exit(1)

    if not sessions:
        typer.secho('No sessions found.', fg=typer.colors.YELLOW)
        return
    sessions = sessions[:limit] if limit else sessions

    exported: list[UnifiedSession] = []
    errors = 0
    for session in sessions:
        path = directory / f'{session.source}_{session.id}.{"json" if as_json else "md"}'
        try:
            if as_json:
                path.write_text(session.model_dump_json(indent=2), encoding='utf-8')
            else:
                context = await extract_context(session, mode, logger)
                path.write_text(context.markdown, encoding='utf-8')
        except (ContinuesError, OSError) as e:
            await logger.error(f'Failed: {session.source}/{session.id}: {e}')
            errors += 1
            continue
        exported.append(session)

    typer.secho('Dump complete:', fg=typer.colors.GREEN, bold=True)
    typer.echo(f'  Files:     {len(exported)} exported')
    if errors:
        typer.secho(f'  Errors:    {errors} failed', fg=typer.colors.RED)
    typer.echo(f'  Directory: {directory}')
    typer.echo()
    typer.echo('  By source:')
    _print_counts(exported, bars=False)

    if errors:
        raise typer.Exit(1)


# ==============================================================================
# Quick resume: one command per tool
# ==============================================================================


async def _quick_resume_async(state: CLIState, source: str, n: int, dry_run: bool) -> None:
    """Resume the Nth newest session of one tool natively."""
    index = _index_service(state)
    try:
        sessions = await index.sessions_by_source(source)
        if not sessions:
            typer.secho(f'No {source} sessions found.', fg=typer.colors.YELLOW)
            return

        position = max(0, min(n - 1, len(sessions) - 1))
        session = sessions[position]
        typer.secho(f'Resuming {source} session #{position + 1}:', dim=True)
        typer.echo(format_session(session))
        typer.echo()

        plan = await plan_launch(session, logger=state.logger)
        if dry_run:
            typer.echo('Command: ', nl=False)
            typer.secho(resume_command(session), fg=typer.colors.CYAN)
            return
        launch(plan)

    except (ContinuesError, OSError) as e:
        _print_error(e)
        raise typer.Exit(1)


def _register_quick_command(name: str, label: str) -> None:
    @app.command(name, help=f'Resume the Nth newest {label} session natively (default: the latest)')
    def quick_resume(
        ctx: typer.Context,
        n: int = typer.Argument(1, min=1, help='1 for the newest session, 2 for the one before, ...'),
        dry_run: bool = typer.Option(False, '--dry-run', help='Show the command without launching'),
    ) -> None:
        asyncio.run(_quick_resume_async(_state(ctx), name, n, dry_run))


for _name, _adapter in ADAPTERS.items():
    _register_quick_command(_name, _adapter.label)


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
