"""
Assembly of forward-flag tokens from config file, interactive prompts and CLI.

Each source is reduced to a raw token list so the same parser handles all
three. Sources are assembled in arrival order (config, interactive, CLI), which
makes the CLI the most recent occurrence under "latest wins".
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, cast, get_args

from continues.exceptions import ContinuesError
from continues.schemas.flags import FlagKey, FlagSource
from continues.services.forwarding import FLAG_SPECS, primary_flag_name

__all__ = [
    'collect_flag_sources',
    'config_forward_tokens',
    'tokens_from_answers',
]

_VALUE_MODES: dict[str, str] = {spec.key: spec.value_mode for spec in FLAG_SPECS}
_KNOWN_KEYS = frozenset(get_args(FlagKey))


def tokens_from_answers(answers: Mapping[str, Any]) -> list[str]:
    """
    Convert ``{flag key: value}`` answers into argv tokens.

    Booleans become a bare option when true and nothing when false; lists
    repeat the option once per element; everything else becomes
    ``--option value`` using the flag's canonical spelling.

    Raises:
        ContinuesError: If a key is not a known flag
    """
    tokens: list[str] = []
    for key, value in answers.items():
        if key not in _KNOWN_KEYS:
            raise ContinuesError(f'Unknown forward flag "{key}"')
        name = primary_flag_name(cast(FlagKey, key))
        values = value if isinstance(value, list) else [value]
        for item in values:
            if item is None or item is False:
                continue
            if item is True:
                if _VALUE_MODES[key] == 'required':
                    raise ContinuesError(f'Forward flag "{key}" needs a value')
                tokens.append(name)
            else:
                tokens.extend([name, str(item)])
    return tokens


def config_forward_tokens(config: Mapping[str, Any]) -> list[str]:
    """
    Tokens from a loaded ``.continues.yml``.

    ``forward`` is a raw token list (``['--model', 'o3']``); ``flags`` is a
    ``{key: value}`` mapping handled like interactive answers. Raw tokens come first.
    """
    tokens: list[str] = []
    forward = config.get('forward')
    if forward is not None:
        if isinstance(forward, str) or not isinstance(forward, list):
            raise ContinuesError('Config "forward" must be a list of argument strings')
        tokens.extend(str(token) for token in forward)
    flags = config.get('flags')
    if flags is not None:
        if not isinstance(flags, Mapping):
            raise ContinuesError('Config "flags" must be a mapping of flag names to values')
        tokens.extend(tokens_from_answers(flags))
    return tokens


def collect_flag_sources(
    cli_tokens: Sequence[str] = (),
    config: Mapping[str, Any] | None = None,
    interactive: Mapping[str, Any] | None = None,
) -> dict[FlagSource, list[str]]:
    """Token lists per source, ready for resolve_forwarding()."""
    sources: dict[FlagSource, list[str]] = {}
    if config:
        config_tokens = config_forward_tokens(config)
        if config_tokens:
            sources['config'] = config_tokens
    if interactive:
        sources['interactive'] = tokens_from_answers(interactive)
    if cli_tokens:
        sources['cli'] = list(cli_tokens)
    return sources
