"""Shared Pydantic base models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunSyncBase(BaseModel):
    """Base model with shared config for all RunSync schemas.

    Fields are populated either by Python name or by their camelCase wire
    alias (``heart_rate`` / ``heartRate``).
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )
