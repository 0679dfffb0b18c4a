"""
Define room and hierarchy structures shared by the fetcher and the notifier.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

SPACE_ROOM_TYPE = "m.space"


class RoomRecord(BaseModel):
    """A leaf room discovered while walking a space."""

    model_config = ConfigDict(frozen=True)

    room_id: str
    name: Optional[str] = None
    canonical_alias: Optional[str] = None
    topic: str = ""
    member_count: int = Field(default=0, ge=0)

    @property
    def display_name(self) -> str:
        """Name shown to humans: name, then alias, then the raw id."""
        return self.name or self.canonical_alias or self.room_id

    @property
    def link_target(self) -> str:
        """Locator used in matrix.to links, preferring the canonical alias."""
        return self.canonical_alias or self.room_id


class HierarchyEntry(BaseModel):
    """One child entry of a space hierarchy listing, as sent by the homeserver."""

    model_config = ConfigDict(extra="ignore")

    room_id: str = Field(min_length=1)
    room_type: Optional[str] = None
    name: Optional[str] = None
    canonical_alias: Optional[str] = None
    topic: Optional[str] = None
    num_joined_members: Optional[int] = 0

    @property
    def is_space(self) -> bool:
        return self.room_type == SPACE_ROOM_TYPE

    def to_room(self) -> RoomRecord:
        """Builds the RoomRecord for a leaf entry."""
        return RoomRecord(
            room_id=self.room_id,
            name=self.name or None,
            canonical_alias=self.canonical_alias or None,
            topic=self.topic or "",
            member_count=max(self.num_joined_members or 0, 0),
        )


class HierarchyPage(BaseModel):
    """A page of a space's child listing."""

    entries: List[HierarchyEntry] = Field(default_factory=list)
    next_token: Optional[str] = None
