"""
Launch-flag forwarding.

Raw argv tokens from each source (config file, interactive prompts, CLI) are
parsed into FlagOccurrence records. A per-target mapper then decides which
occurrences it turns into target-native arguments; every token no mapper
consumed is passed through unchanged.

FlagContext is an immutable value: query methods are pure and every
``consume*`` method returns a new context, so resolution never depends on
hidden state and can be repeated with identical results.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Mapping, Sequence
from typing import Final, Literal

import attrs

from continues.schemas.flags import (
    FLAG_SOURCE_ORDER,
    FlagKey,
    FlagMapping,
    FlagOccurrence,
    FlagSource,
    ForwardResolution,
)

__all__ = [
    'FLAG_SPECS',
    'FlagContext',
    'FlagMapper',
    'FlagSpec',
    'build_flag_context',
    'format_forward_args',
    'normalize_agent_sandbox',
    'parse_boolean_like',
    'parse_forward_flags',
    'primary_flag_name',
    'resolve_forwarding',
    'split_csv',
]

ValueMode = Literal['none', 'required', 'optional']


@attrs.define(frozen=True)
class FlagSpec:
    key: FlagKey
    names: tuple[str, ...]
    value_mode: ValueMode


FLAG_SPECS: Final[tuple[FlagSpec, ...]] = (
    FlagSpec('dangerouslyBypass', ('--dangerously-bypass-approvals-and-sandbox',), 'none'),
    FlagSpec('dangerouslySkipPermissions', ('--dangerously-skip-permissions',), 'none'),
    FlagSpec('fullAuto', ('--full-auto',), 'none'),
    FlagSpec('askForApproval', ('--ask-for-approval', '-a'), 'required'),
    FlagSpec('approvalMode', ('--approval-mode',), 'required'),
    FlagSpec('permissionMode', ('--permission-mode',), 'required'),
    FlagSpec('allowedMcpServerNames', ('--allowed-mcp-server-names',), 'required'),
    FlagSpec('additionalMcpConfig', ('--additional-mcp-config',), 'required'),
    FlagSpec('includeDirectories', ('--include-directories',), 'required'),
    FlagSpec('disallowedTools', ('--disallowed-tools', '--disallowedTools'), 'required'),
    FlagSpec('allowedTools', ('--allowed-tools', '--allowedTools'), 'required'),
    FlagSpec('allowTool', ('--allow-tool',), 'required'),
    FlagSpec('denyTool', ('--deny-tool',), 'required'),
    FlagSpec('approveMcps', ('--approve-mcps',), 'none'),
    FlagSpec('addDir', ('--add-dir',), 'required'),
    FlagSpec('agent', ('--agent',), 'required'),
    FlagSpec('logLevel', ('--log-level',), 'required'),
    FlagSpec('mcpConfig', ('--mcp-config',), 'required'),
    FlagSpec('workspace', ('--workspace',), 'required'),
    FlagSpec('sandbox', ('--sandbox', '-s'), 'optional'),
    FlagSpec('model', ('--model', '-m'), 'required'),
    FlagSpec('yolo', ('--yolo', '-y'), 'none'),
    FlagSpec('allowAll', ('--allow-all',), 'none'),
    FlagSpec('force', ('--force', '-f'), 'none'),
    FlagSpec('debug', ('--debug', '-d'), 'optional'),
    FlagSpec('plan', ('--plan',), 'none'),
    FlagSpec('mode', ('--mode',), 'required'),
    FlagSpec('cd', ('--cd', '-C'), 'required'),
    FlagSpec('config', ('--config', '-c'), 'required'),
)

_SPECS_BY_KEY: Final[dict[FlagKey, FlagSpec]] = {spec.key: spec for spec in FLAG_SPECS}


def primary_flag_name(key: FlagKey) -> str:
    """Canonical long spelling of a flag, e.g. 'model' -> '--model'."""
    return _SPECS_BY_KEY[key].names[0]


# ==============================================================================
# Value helpers
# ==============================================================================


def split_csv(values: Sequence[str]) -> list[str]:
    """Split comma-joined values and drop blanks: ['a,b', ' c'] -> ['a', 'b', 'c']."""
    return [part.strip() for value in values for part in value.split(',') if part.strip()]


def parse_boolean_like(value: str | bool) -> bool | None:
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized in ('1', 'true', 'yes', 'on', 'enabled'):
        return True
    if normalized in ('0', 'false', 'no', 'off', 'disabled'):
        return False
    return None


def normalize_agent_sandbox(value: str | bool | None) -> Literal['enabled', 'disabled'] | None:
    """Map Codex-style sandbox values onto Cursor agent's enabled/disabled."""
    if value is None:
        return None
    if isinstance(value, bool):
        return 'enabled' if value else 'disabled'
    normalized = value.strip().lower()
    if normalized in ('enabled', 'on', 'true', '1', 'read-only', 'workspace-write'):
        return 'enabled'
    if normalized in ('disabled', 'off', 'false', '0', 'danger-full-access'):
        return 'disabled'
    return None


def format_forward_args(args: Sequence[str]) -> str:
    """Shell-safe preview of an argument list."""
    return shlex.join(args)


# ==============================================================================
# Parsing
# ==============================================================================


def _match_spec_at(
    tokens: Sequence[str],
    index: int,
    spec: FlagSpec,
) -> tuple[str | bool | None, tuple[int, ...], str] | None:
    """
    Try ``spec`` at ``tokens[index]``.

    Returns None if no spelling matches; otherwise (value, indices, spelling),
    where value is None when a required value is missing.
    """
    token = tokens[index]
    for name in spec.names:
        prefix = f'{name}='
        if token != name and not token.startswith(prefix):
            continue
        if spec.value_mode == 'none':
            # '--yolo=false' is still a yolo mention; the mapper reads the value
            return (True if token == name else token[len(prefix) :]), (index,), name
        if token.startswith(prefix):
            return token[len(prefix) :], (index,), name
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if following is not None and not following.startswith('-'):
            return following, (index, index + 1), name
        if spec.value_mode == 'optional':
            return True, (index,), name
        return None, (index,), name
    return None


def parse_forward_flags(
    tokens: Sequence[str],
    source: FlagSource = 'cli',
    seq_start: int = 0,
) -> list[FlagOccurrence]:
    """
    Parse raw argv tokens into flag occurrences.

    Unknown tokens are skipped (they stay passthrough). A known option whose
    required value is missing produces no occurrence and its token is left
    untouched.

    Args:
        tokens: Raw tokens from one source
        source: Where the tokens came from
        seq_start: First sequence number to assign (arrival order across sources)

    Returns:
        Occurrences in token order
    """
    occurrences: list[FlagOccurrence] = []
    index = 0
    while index < len(tokens):
        for spec in FLAG_SPECS:
            matched = _match_spec_at(tokens, index, spec)
            if matched is None:
                continue
            value, indices, name = matched
            if value is not None:
                occurrences.append(
                    FlagOccurrence(
                        key=spec.key,
                        value=value,
                        source=source,
                        source_flag=name,
                        seq=seq_start + len(occurrences),
                        indices=indices,
                    )
                )
            index = indices[-1]
            break
        index += 1
    return occurrences


# ==============================================================================
# Context
# ==============================================================================


@attrs.define(frozen=True)
class FlagContext:
    """
    Parsed occurrences from every source plus the set already consumed.

    Occurrences are ordered by ``seq`` (config, then interactive, then CLI), so
    "latest" means the most recent arrival and the CLI wins ties of intent.
    """

    tokens: Mapping[FlagSource, tuple[str, ...]]
    occurrences: tuple[FlagOccurrence, ...]
    consumed: frozenset[int] = frozenset()

    # --- queries -------------------------------------------------------------

    def all(self, *keys: FlagKey) -> list[FlagOccurrence]:
        """Unconsumed occurrences of any of ``keys``, in arrival order."""
        return [occ for occ in self.occurrences if occ.key in keys and occ.seq not in self.consumed]

    def has(self, *keys: FlagKey) -> bool:
        return bool(self.all(*keys))

    def latest(self, *keys: FlagKey) -> FlagOccurrence | None:
        found = self.all(*keys)
        return found[-1] if found else None

    def latest_string(self, *keys: FlagKey) -> str | None:
        for occ in reversed(self.all(*keys)):
            if isinstance(occ.value, str):
                return occ.value
        return None

    def all_strings(self, *keys: FlagKey) -> list[str]:
        return [occ.value for occ in self.all(*keys) if isinstance(occ.value, str)]

    def all_csv_strings(self, *keys: FlagKey) -> list[str]:
        return split_csv(self.all_strings(*keys))

    # --- consumption (returns a new context) ---------------------------------

    def consume(self, *occurrences: FlagOccurrence) -> FlagContext:
        return attrs.evolve(self, consumed=self.consumed | {occ.seq for occ in occurrences})

    def consume_keys(self, *keys: FlagKey) -> FlagContext:
        return self.consume(*self.all(*keys))

    def consume_latest(self, *keys: FlagKey) -> tuple[FlagContext, FlagOccurrence | None]:
        """Consume every occurrence of ``keys``; the latest one supersedes the rest."""
        return self.consume_keys(*keys), self.latest(*keys)

    def consume_latest_string(self, *keys: FlagKey) -> tuple[FlagContext, str | None]:
        """Consume string-valued occurrences of ``keys``, returning the latest value."""
        found = [occ for occ in self.all(*keys) if isinstance(occ.value, str)]
        return self.consume(*found), (str(found[-1].value) if found else None)

    def consume_all_strings(self, *keys: FlagKey) -> tuple[FlagContext, list[str]]:
        found = [occ for occ in self.all(*keys) if isinstance(occ.value, str)]
        return self.consume(*found), [str(occ.value) for occ in found]

    def consume_all_csv_strings(self, *keys: FlagKey) -> tuple[FlagContext, list[str]]:
        ctx, values = self.consume_all_strings(*keys)
        return ctx, split_csv(values)

    def consume_any_boolean(self, *keys: FlagKey) -> tuple[FlagContext, bool]:
        """Consume truthy occurrences of ``keys``; True if there was at least one."""
        found = [occ for occ in self.all(*keys) if parse_boolean_like(occ.value) is True]
        return self.consume(*found), bool(found)

    # --- results -------------------------------------------------------------

    def consumed_indices(self, source: FlagSource) -> set[int]:
        return {
            index
            for occ in self.occurrences
            if occ.seq in self.consumed and occ.source == source
            for index in occ.indices
        }

    def passthrough_args(self) -> list[str]:
        """Raw tokens no consumed occurrence covers, sources in arrival order."""
        passthrough: list[str] = []
        for source in FLAG_SOURCE_ORDER:
            consumed = self.consumed_indices(source)
            tokens = self.tokens.get(source, ())
            passthrough.extend(token for index, token in enumerate(tokens) if index not in consumed)
        return passthrough

    def unresolved(self) -> list[FlagOccurrence]:
        return [occ for occ in self.occurrences if occ.seq not in self.consumed]


FlagMapper = Callable[[FlagContext], tuple[FlagContext, FlagMapping]]


def build_flag_context(sources: Mapping[FlagSource, Sequence[str]] | Sequence[str] | None) -> FlagContext:
    """
    Parse every source into one context.

    Args:
        sources: Tokens per source, or a bare token list (treated as CLI tokens)
    """
    if sources is None:
        sources = {}
    elif not isinstance(sources, Mapping):
        sources = {'cli': sources}

    tokens: dict[FlagSource, tuple[str, ...]] = {}
    occurrences: list[FlagOccurrence] = []
    for source in FLAG_SOURCE_ORDER:
        source_tokens = tuple(sources.get(source, ()))
        if not source_tokens:
            continue
        tokens[source] = source_tokens
        occurrences.extend(parse_forward_flags(source_tokens, source, seq_start=len(occurrences)))
    return FlagContext(tokens=tokens, occurrences=tuple(occurrences))


def resolve_forwarding(
    sources: Mapping[FlagSource, Sequence[str]] | Sequence[str] | None,
    mapper: FlagMapper | None,
) -> ForwardResolution:
    """
    Resolve raw flag tokens into the target's launch arguments.

    ``extra_args`` is the mapped arguments followed by every unconsumed raw
    token. Without a mapper all tokens pass through untouched.
    """
    ctx = build_flag_context(sources)
    if mapper is None or not ctx.tokens:
        passthrough = ctx.passthrough_args()
        return ForwardResolution(
            mapped_args=[],
            passthrough_args=passthrough,
            extra_args=passthrough,
            warnings=[],
            unresolved=list(ctx.occurrences),
        )

    ctx, mapping = mapper(ctx)
    passthrough = ctx.passthrough_args()
    return ForwardResolution(
        mapped_args=list(mapping.mapped_args),
        passthrough_args=passthrough,
        extra_args=[*mapping.mapped_args, *passthrough],
        warnings=list(mapping.warnings),
        unresolved=ctx.unresolved(),
    )
