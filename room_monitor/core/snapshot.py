"""
Durable monitor state and per-cycle results.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MonitorSnapshot(BaseModel):
    """
    Rooms known at the end of the last completed poll cycle.
    Serialized with the on-disk key names (rooms, roomNames, lastUpdated, observedSpace).
    """

    model_config = ConfigDict(populate_by_name=True)

    known_room_ids: Set[str] = Field(default_factory=set, alias="rooms")
    room_names: Dict[str, str] = Field(default_factory=dict, alias="roomNames")
    last_updated_at: Optional[datetime] = Field(default=None, alias="lastUpdated")
    observed_space_id: Optional[str] = Field(default=None, alias="observedSpace")

    @field_serializer("known_room_ids")
    def serialize_known_room_ids(self, ids: Set[str]) -> List[str]:
        return sorted(ids)


class PollCycleResult(BaseModel):
    """Outcome of a single fetch -> diff -> notify -> persist cycle."""

    checked: int = 0
    new: int = 0
    notified: int = 0
    baseline: bool = False
    skipped: bool = False
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
