"""
CLI configuration - lazy settings singleton for the continues command.
"""

from __future__ import annotations

from continues.config.base import ContinuesSettings, lazy_settings

settings: ContinuesSettings = lazy_settings(ContinuesSettings)
