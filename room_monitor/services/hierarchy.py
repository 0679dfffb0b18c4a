"""
Walks a space hierarchy into a flat list of leaf rooms.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Set, Tuple

from room_monitor.core.errors import AccessDeniedError, MalformedResponseError
from room_monitor.core.room import HierarchyEntry, RoomRecord
from room_monitor.services.matrix import IMatrixClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


@dataclass
class TraversalReport:
    """
    Outcome of one traversal.
    rooms keeps discovery order: breadth-first by space, page order within a space.
    """

    space_id: str
    rooms: List[RoomRecord] = field(default_factory=list)
    expanded_spaces: List[str] = field(default_factory=list)
    failed_spaces: List[str] = field(default_factory=list)
    truncated_spaces: List[str] = field(default_factory=list)
    root_reachable: bool = True


class HierarchyFetcher:
    """
    Expands a space and its sub-spaces into leaf rooms.
    Every space is expanded at most once per traversal, whatever the shape of the graph.
    """

    def __init__(self, client: IMatrixClient, max_depth: int = DEFAULT_MAX_DEPTH):
        self.client = client
        self.max_depth = max_depth

    async def fetch_rooms(self, space_id: str) -> List[RoomRecord]:
        """Returns the leaf rooms under space_id, or an empty list if the root is unreachable."""
        report = await self.traverse(space_id)
        return report.rooms

    async def traverse(self, space_id: str) -> TraversalReport:
        """
        Breadth-first expansion using an explicit work queue.
        A failing sub-space is logged and dropped; its siblings are still expanded.
        """
        report = TraversalReport(space_id=space_id)
        visited: Set[str] = {space_id}
        queue: Deque[Tuple[str, int]] = deque([(space_id, 0)])
        seen_rooms: Set[str] = set()

        while queue:
            current, depth = queue.popleft()

            try:
                entries = await self._list_children(current)
            except AccessDeniedError as e:
                logger.warning("Access denied to space %s, skipping branch: %s", current, e)
                report.failed_spaces.append(current)
                entries = None
            # pylint: disable=broad-exception-caught
            except Exception as e:
                logger.warning("Failed to expand space %s, skipping branch: %s", current, e)
                report.failed_spaces.append(current)
                entries = None

            if entries is None:
                if current == space_id:
                    report.root_reachable = False
                    return report
                continue

            report.expanded_spaces.append(current)

            for entry in entries:
                # The listing includes the space itself
                if entry.room_id == current:
                    continue

                if entry.is_space:
                    if entry.room_id in visited:
                        continue
                    if depth + 1 > self.max_depth:
                        logger.warning(
                            "Not expanding space %s: depth limit %d reached", entry.room_id, self.max_depth
                        )
                        report.truncated_spaces.append(entry.room_id)
                        continue
                    visited.add(entry.room_id)
                    queue.append((entry.room_id, depth + 1))

                elif entry.room_id not in seen_rooms:
                    seen_rooms.add(entry.room_id)
                    report.rooms.append(entry.to_room())

        logger.info(
            "Traversed %s: %d rooms in %d spaces (%d failed)",
            space_id,
            len(report.rooms),
            len(report.expanded_spaces),
            len(report.failed_spaces),
        )
        return report

    async def _list_children(self, space_id: str) -> List[HierarchyEntry]:
        """
        Collects every page of a space listing.
        Nothing is returned unless all pages were fetched.
        """
        entries: List[HierarchyEntry] = []
        seen_tokens: Set[str] = set()
        token: Optional[str] = None

        while True:
            page = await self.client.get_hierarchy_page(space_id, token)
            entries.extend(page.entries)

            token = page.next_token
            if not token:
                return entries
            if token in seen_tokens:
                raise MalformedResponseError(f"Pagination of {space_id} repeated token {token!r}")
            seen_tokens.add(token)
