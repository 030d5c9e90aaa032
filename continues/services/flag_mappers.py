"""
Per-target launch-flag mappers.

Every mapper has the same shape: an autonomy precedence chain first (the most
permissive intent wins and consumes the weaker flags it overrides, with a
warning when it does), then independent mappings for model, directories, tool
allow/deny lists and config. A mapper consumes exactly the occurrences it maps;
everything else is left for passthrough.
"""

from __future__ import annotations

from typing import Final

from continues.schemas.flags import FlagKey, FlagMapping, FlagOccurrence
from continues.services.forwarding import FlagContext, FlagMapper, normalize_agent_sandbox
from continues.types import SessionSource

__all__ = [
    'AUTO_APPROVE_KEYS',
    'FLAG_MAPPERS',
    'map_claude_flags',
    'map_codex_flags',
    'map_copilot_flags',
    'map_cursor_flags',
    'map_droid_flags',
    'map_gemini_flags',
    'map_opencode_flags',
]

AUTO_APPROVE_KEYS: Final[tuple[FlagKey, ...]] = (
    'yolo',
    'force',
    'allowAll',
    'dangerouslyBypass',
    'dangerouslySkipPermissions',
)


def _spellings(occurrences: list[FlagOccurrence]) -> str:
    return ', '.join(dict.fromkeys(occ.source_flag for occ in occurrences))


def _override_warning(winner: str, target: str, overridden: list[FlagOccurrence]) -> list[str]:
    if not overridden:
        return []
    return [f'{winner} overrides {_spellings(overridden)} for {target}; ignoring the weaker setting.']


def _map_model(ctx: FlagContext, args: list[str], flag: str = '--model') -> FlagContext:
    ctx, model = ctx.consume_latest_string('model')
    if model:
        args.extend([flag, model])
    return ctx


def _map_repeatable(ctx: FlagContext, args: list[str], flag: str, *keys: FlagKey) -> FlagContext:
    ctx, values = ctx.consume_all_csv_strings(*keys)
    for value in values:
        args.extend([flag, value])
    return ctx


# ==============================================================================
# Codex
# ==============================================================================


def map_codex_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """
    Codex precedence: auto-approve > --full-auto > explicit --sandbox/--ask-for-approval.
    """
    args: list[str] = []
    warnings: list[str] = []

    weaker = ctx.all('fullAuto', 'sandbox', 'askForApproval')
    ctx, auto_approve = ctx.consume_any_boolean(*AUTO_APPROVE_KEYS)
    if auto_approve:
        ctx = ctx.consume_keys('fullAuto', 'sandbox', 'askForApproval')
        args.append('--dangerously-bypass-approvals-and-sandbox')
        warnings += _override_warning('Auto-approve', 'codex', weaker)
    else:
        ctx, full_auto = ctx.consume_any_boolean('fullAuto')
        if full_auto:
            overridden = ctx.all('sandbox', 'askForApproval')
            ctx = ctx.consume_keys('sandbox', 'askForApproval')
            args.append('--full-auto')
            warnings += _override_warning('--full-auto', 'codex', overridden)
        else:
            ctx, sandbox = ctx.consume_latest_string('sandbox')
            if sandbox:
                args.extend(['--sandbox', sandbox])
            ctx, approval = ctx.consume_latest_string('askForApproval')
            if approval:
                args.extend(['--ask-for-approval', approval])

    ctx = _map_model(ctx, args)
    ctx = _map_repeatable(ctx, args, '--add-dir', 'addDir', 'includeDirectories')
    ctx, cd = ctx.consume_latest_string('cd')
    if cd:
        args.extend(['--cd', cd])
    ctx, overrides = ctx.consume_all_strings('config')
    for override in overrides:
        args.extend(['-c', override])
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


# ==============================================================================
# Claude
# ==============================================================================


def map_claude_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """Claude precedence: auto-approve > --permission-mode / --plan."""
    args: list[str] = []
    warnings: list[str] = []

    weaker = ctx.all('permissionMode', 'plan')
    ctx, auto_approve = ctx.consume_any_boolean(*AUTO_APPROVE_KEYS)
    if auto_approve:
        ctx = ctx.consume_keys('permissionMode', 'plan')
        args.append('--dangerously-skip-permissions')
        warnings += _override_warning('Auto-approve', 'claude', weaker)
    else:
        ctx, mode = ctx.consume_latest_string('permissionMode')
        ctx, plan = ctx.consume_any_boolean('plan')
        if mode:
            args.extend(['--permission-mode', mode])
        elif plan:
            args.extend(['--permission-mode', 'plan'])

    ctx = _map_model(ctx, args)
    ctx = _map_repeatable(ctx, args, '--add-dir', 'addDir', 'includeDirectories')
    ctx = _map_repeatable(ctx, args, '--allowed-tools', 'allowedTools', 'allowTool')
    ctx = _map_repeatable(ctx, args, '--disallowed-tools', 'disallowedTools', 'denyTool')
    ctx, mcp_configs = ctx.consume_all_strings('mcpConfig')
    for mcp_config in mcp_configs:
        args.extend(['--mcp-config', mcp_config])
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


# ==============================================================================
# Gemini
# ==============================================================================


def map_gemini_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """Gemini precedence: auto-approve (yolo) > --full-auto (auto_edit) > --approval-mode."""
    args: list[str] = []
    warnings: list[str] = []

    ctx, auto_approve = ctx.consume_any_boolean(*AUTO_APPROVE_KEYS)
    if auto_approve:
        overridden = ctx.all('fullAuto', 'approvalMode')
        ctx = ctx.consume_keys('fullAuto', 'approvalMode')
        args.extend(['--approval-mode', 'yolo'])
        warnings += _override_warning('Auto-approve', 'gemini', overridden)
    else:
        ctx, full_auto = ctx.consume_any_boolean('fullAuto')
        if full_auto:
            overridden = ctx.all('approvalMode')
            ctx = ctx.consume_keys('approvalMode')
            args.extend(['--approval-mode', 'auto_edit'])
            warnings += _override_warning('--full-auto', 'gemini', overridden)
        else:
            ctx, mode = ctx.consume_latest_string('approvalMode')
            if mode:
                args.extend(['--approval-mode', mode])

    sandbox = ctx.latest('sandbox')
    if sandbox is not None:
        # Gemini's sandbox is on/off; any mode other than an explicit off counts as on
        ctx = ctx.consume_keys('sandbox')
        if normalize_agent_sandbox(sandbox.value) != 'disabled':
            args.append('--sandbox')

    ctx = _map_model(ctx, args)
    ctx = _map_repeatable(ctx, args, '--include-directories', 'addDir', 'includeDirectories')
    ctx = _map_repeatable(ctx, args, '--allowed-mcp-server-names', 'allowedMcpServerNames')
    ctx = _map_repeatable(ctx, args, '--allowed-tools', 'allowedTools', 'allowTool')
    ctx, debug = ctx.consume_any_boolean('debug')
    if debug:
        args.append('--debug')
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


# ==============================================================================
# Copilot
# ==============================================================================


def map_copilot_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """Copilot precedence: auto-approve (--allow-all-tools) > per-tool --allow-tool."""
    args: list[str] = []
    warnings: list[str] = []

    ctx, auto_approve = ctx.consume_any_boolean(*AUTO_APPROVE_KEYS)
    if auto_approve:
        overridden = ctx.all('allowTool', 'allowedTools')
        ctx = ctx.consume_keys('allowTool', 'allowedTools')
        args.append('--allow-all-tools')
        warnings += _override_warning('Auto-approve', 'copilot', overridden)
    else:
        ctx = _map_repeatable(ctx, args, '--allow-tool', 'allowTool', 'allowedTools')

    ctx = _map_repeatable(ctx, args, '--deny-tool', 'denyTool', 'disallowedTools')
    ctx = _map_model(ctx, args)
    ctx = _map_repeatable(ctx, args, '--add-dir', 'addDir', 'includeDirectories')
    ctx, log_level = ctx.consume_latest_string('logLevel')
    if log_level:
        args.extend(['--log-level', log_level])
    ctx, mcp_configs = ctx.consume_all_strings('additionalMcpConfig', 'mcpConfig')
    for mcp_config in mcp_configs:
        args.extend(['--additional-mcp-config', mcp_config])
    ctx, agent = ctx.consume_latest_string('agent')
    if agent:
        args.extend(['--agent', agent])
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


# ==============================================================================
# Cursor agent
# ==============================================================================


def map_cursor_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """Cursor agent: --force for auto-approve, sandbox normalized to enabled/disabled."""
    args: list[str] = []
    warnings: list[str] = []

    ctx = _map_model(ctx, args)

    ctx, auto_approve = ctx.consume_any_boolean(*AUTO_APPROVE_KEYS)
    if auto_approve:
        args.append('--force')

    sandbox = ctx.latest('sandbox')
    if sandbox is not None:
        normalized = normalize_agent_sandbox(sandbox.value)
        if normalized is None:
            warnings.append(f'Unrecognized sandbox value {sandbox.value!r} for cursor; passing it through.')
        else:
            ctx = ctx.consume_keys('sandbox')
            args.extend(['--sandbox', normalized])

    ctx, approve_mcps = ctx.consume_any_boolean('approveMcps')
    if approve_mcps:
        args.append('--approve-mcps')
    ctx, workspace = ctx.consume_latest_string('workspace', 'cd')
    if workspace:
        args.extend(['--workspace', workspace])
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


# ==============================================================================
# OpenCode and Droid
# ==============================================================================


def map_opencode_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """OpenCode has no launch-time autonomy flags; auto-approve is dropped with a warning."""
    args: list[str] = []
    warnings: list[str] = []

    dropped = ctx.all(*AUTO_APPROVE_KEYS, 'fullAuto')
    if dropped:
        ctx = ctx.consume(*dropped)
        warnings.append(f'opencode has no auto-approve launch flag; ignoring {_spellings(dropped)}.')

    ctx = _map_model(ctx, args)
    ctx, agent = ctx.consume_latest_string('agent')
    if agent:
        args.extend(['--agent', agent])
    ctx, log_level = ctx.consume_latest_string('logLevel')
    if log_level:
        args.extend(['--log-level', log_level])
    return ctx, FlagMapping(mapped_args=args, warnings=warnings)


def map_droid_flags(ctx: FlagContext) -> tuple[FlagContext, FlagMapping]:
    """Droid has no mappable launch flags yet: identity, everything passes through."""
    return ctx, FlagMapping()


FLAG_MAPPERS: Final[dict[SessionSource, FlagMapper]] = {
    'claude': map_claude_flags,
    'codex': map_codex_flags,
    'copilot': map_copilot_flags,
    'gemini': map_gemini_flags,
    'opencode': map_opencode_flags,
    'droid': map_droid_flags,
    'cursor': map_cursor_flags,
}
