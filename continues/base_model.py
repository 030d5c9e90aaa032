"""
Pydantic base for every continues value type.

Index entries, extracted contexts, tool samples and flag resolutions are all
built once and then only read, so the base freezes them and rejects unknown
or loosely typed fields.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Immutable model that rejects extra fields and type coercion."""

    model_config = ConfigDict(
        extra='forbid',
        strict=True,  # Timestamps opt back out through types.JsonDatetime
        frozen=True,
    )
