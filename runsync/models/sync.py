"""Pydantic models for the sync wire message and the phone's state endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field

from runsync.models.base import RunSyncBase, utc_now


# ---------- Wire message ----------

class SyncMessage(RunSyncBase):
    """One push from the wrist to the phone.

    Two historical shapes share this model:
        ``{"action": "running"}``                       legacy, no heart rate
        ``{"action": "running", "heartRate": 132.0}``   current

    ``action`` is kept as a free string: anything other than ``"running"``
    means "not running".
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    action: str
    heart_rate: float | None = Field(default=None, alias="heartRate", ge=0)

    @property
    def is_running(self) -> bool:
        return self.action == "running"

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the wire dict, omitting ``heartRate`` when absent."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Phone state endpoint ----------

class ActivityStateRead(RunSyncBase):
    is_running: bool = Field(alias="isRunning")
    heart_rate: float = Field(alias="heartRate", ge=0)
    scene: str
    messages_applied: int = Field(default=0, alias="messagesApplied")
    read_at: datetime = Field(default_factory=utc_now, alias="readAt")


class DeliveryAccepted(RunSyncBase):
    status: str = "accepted"
