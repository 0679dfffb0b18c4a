"""
Announces newly discovered rooms in the notification room.
"""

import asyncio
import html
import logging
from typing import Any, Dict, Sequence

from pydantic import BaseModel

from room_monitor.core.room import RoomRecord
from room_monitor.services.matrix import IMatrixClient

logger = logging.getLogger(__name__)

MATRIX_TO = "https://matrix.to/#/"
HEADER = "New room created in monitored space!"
DEFAULT_SEND_DELAY_MS = 500


class NotificationMessage(BaseModel):
    """Plain and HTML renderings of one announcement."""

    plain_text: str
    rich_text: str

    def to_event_content(self) -> Dict[str, Any]:
        return {
            "msgtype": "m.text",
            "body": self.plain_text,
            "format": "org.matrix.custom.html",
            "formatted_body": self.rich_text,
        }


def render_notification(room: RoomRecord) -> NotificationMessage:
    """Builds the announcement for a room."""
    link = f"{MATRIX_TO}{room.link_target}"
    show_name = room.display_name != room.room_id

    lines = [f"🆕 {HEADER}", ""]
    if show_name:
        lines.append(f"**Room Name:** {room.display_name}")
    if room.topic:
        lines.append(f"**Description:** {room.topic}")
    lines.append(f"**Room ID:** {room.room_id}")
    lines.append(f"👥 Members: {room.member_count}")
    lines.append(f"🔗 {link}")

    esc = html.escape
    parts = [f"<p>🆕 <strong>{esc(HEADER)}</strong></p>"]
    if show_name:
        parts.append(f"<p><strong>Room Name:</strong> {esc(room.display_name)}</p>")
    if room.topic:
        parts.append(f"<p><strong>Description:</strong> {esc(room.topic)}</p>")
    parts.append(f"<p><strong>Room ID:</strong> {esc(room.room_id)}</p>")
    parts.append(f"<p><strong>👥 Members:</strong> {room.member_count}</p>")
    parts.append(f'<p>🔗 <a href="{esc(link)}">{esc(link)}</a></p>')

    return NotificationMessage(plain_text="\n".join(lines), rich_text="".join(parts))


class NotificationDispatcher:
    """Sends room announcements, one at a time."""

    def __init__(self, client: IMatrixClient, room_id: str, send_delay_ms: int = DEFAULT_SEND_DELAY_MS):
        self.client = client
        self.room_id = room_id
        self.send_delay_ms = send_delay_ms

    async def notify(self, room: RoomRecord) -> bool:
        """Sends the announcement for one room. Failures are logged, not raised."""
        message = render_notification(room)
        logger.info("Sending notification for room %s", room.room_id)

        try:
            await self.client.send_message(self.room_id, message.to_event_content())
        # pylint: disable=broad-exception-caught
        except Exception as e:
            logger.error("Error sending notification for room %s: %s", room.room_id, e)
            return False
        return True

    async def notify_all(self, rooms: Sequence[RoomRecord]) -> int:
        """
        Announces each room in order, waiting send_delay_ms between sends
        to stay under the homeserver's rate limits.
        Returns how many announcements were delivered.
        """
        delivered = 0
        for index, room in enumerate(rooms):
            if index > 0 and self.send_delay_ms:
                await asyncio.sleep(self.send_delay_ms / 1000)
            if await self.notify(room):
                delivered += 1

        if rooms:
            logger.info("Delivered %d/%d room notifications", delivered, len(rooms))
        return delivered
