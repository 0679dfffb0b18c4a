"""
Module for room set comparisons

Works out which rooms of a fresh traversal were not known
at the end of the previous poll cycle.
"""

from typing import AbstractSet, List, Sequence, Set, Tuple

from room_monitor.core.room import RoomRecord


class ChangeDetector:
    """
    Stateless comparison of room listings.

    Methods:
        diff: Splits a traversal into newly seen rooms and the full id set.
    """

    @staticmethod
    def diff(
        current_rooms: Sequence[RoomRecord], previous_known_ids: AbstractSet[str]
    ) -> Tuple[List[RoomRecord], Set[str]]:
        """
        Compare the current rooms against the previously known ids.

        Args:
            current_rooms (Sequence[RoomRecord]): Rooms found by the latest traversal,
                in discovery order.
            previous_known_ids (AbstractSet[str]): Room ids known before this cycle.

        Returns:
            Tuple[List[RoomRecord], Set[str]]: The rooms absent from previous_known_ids,
            in the order they appear in current_rooms, and the set of all current ids.
        """
        current_ids = {room.room_id for room in current_rooms}
        new_rooms = []
        seen: Set[str] = set()

        for room in current_rooms:
            if room.room_id in previous_known_ids or room.room_id in seen:
                continue
            seen.add(room.room_id)
            new_rooms.append(room)

        return new_rooms, current_ids
