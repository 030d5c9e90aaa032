"""
Extraction, rendering and flag-resolution pipeline.

Only the pure pipeline is re-exported here. The index and handoff services
depend on the adapter registry, which imports every reader, so they are
imported from their modules directly.
"""

from continues.services.classifier import classify, sample_limit
from continues.services.diff import count_diff_stats, extract_exit_code, format_edit_diff, format_new_file_diff
from continues.services.extraction import (
    ToolActivity,
    build_result_lookup,
    extract_thinking_highlights,
    invocations_from_content_blocks,
    summarize_invocations,
    trim_messages,
)
from continues.services.flag_mappers import FLAG_MAPPERS
from continues.services.flag_sources import collect_flag_sources
from continues.services.forwarding import FlagContext, format_forward_args, parse_forward_flags, resolve_forwarding
from continues.services.rendering import HandoffMode, render_handoff
from continues.services.summarizer import SummaryCollector

__all__ = [
    'FLAG_MAPPERS',
    'FlagContext',
    'HandoffMode',
    'SummaryCollector',
    'ToolActivity',
    'build_result_lookup',
    'classify',
    'collect_flag_sources',
    'count_diff_stats',
    'extract_exit_code',
    'extract_thinking_highlights',
    'format_edit_diff',
    'format_forward_args',
    'format_new_file_diff',
    'invocations_from_content_blocks',
    'parse_forward_flags',
    'render_handoff',
    'resolve_forwarding',
    'sample_limit',
    'summarize_invocations',
    'trim_messages',
]
