"""
Shared helpers: an in-memory space graph served through a mocked Matrix client.
"""

# pylint: disable=redefined-outer-name
from typing import Any, Dict, List, Union
from unittest.mock import AsyncMock, MagicMock

import pytest

from room_monitor.core.room import HierarchyEntry, HierarchyPage

# space_id -> list of pages; a page is a list of entries, or an exception raised when that page is requested.
# A space mapped directly to an exception fails on its first page.
SpaceGraph = Dict[str, Union[Exception, List[Union[List[HierarchyEntry], Exception]]]]


def space(room_id: str) -> HierarchyEntry:
    """A sub-space entry."""
    return HierarchyEntry(room_id=room_id, room_type="m.space")


def room(room_id: str, **kwargs: Any) -> HierarchyEntry:
    """A leaf room entry."""
    return HierarchyEntry(room_id=room_id, **kwargs)


def graph_client(graph: SpaceGraph) -> MagicMock:
    """
    Mocked IMatrixClient serving pages out of graph.
    Continuation tokens are page indexes as strings. The graph is read on every call,
    so tests can change it between cycles.
    """

    async def get_page(space_id: str, from_token: Union[str, None] = None) -> HierarchyPage:
        pages = graph[space_id]
        if isinstance(pages, Exception):
            raise pages

        index = int(from_token) if from_token else 0
        item = pages[index]
        if isinstance(item, Exception):
            raise item

        next_token = str(index + 1) if index + 1 < len(pages) else None
        return HierarchyPage(entries=item, next_token=next_token)

    client = MagicMock()
    client.get_hierarchy_page = AsyncMock(side_effect=get_page)
    client.send_message = AsyncMock(return_value="$event")
    return client


def expanded_spaces(client: MagicMock) -> List[str]:
    """Space ids whose first page was requested, in call order."""
    return [c.args[0] for c in client.get_hierarchy_page.call_args_list if len(c.args) < 2 or c.args[1] is None]


@pytest.fixture
def state_file(tmp_path):
    """Path of a not-yet-existing snapshot file."""
    return tmp_path / "data" / "room-monitor-state.json"
