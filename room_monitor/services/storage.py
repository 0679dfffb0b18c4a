"""
Defines snapshot persistence, using a JSON file, so a restarted
monitor does not announce rooms it already knew about.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from room_monitor.core.errors import MalformedStateError, PersistError
from room_monitor.core.snapshot import MonitorSnapshot

logger = logging.getLogger(__name__)


class StatePersister:
    """Handles the monitor's snapshot file."""

    def __init__(self, state_file: Union[str, Path]):
        self.state_file = Path(state_file)

    def load(self) -> Optional[MonitorSnapshot]:
        """
        Loads the last saved snapshot.
        Returns None when there is no file or it cannot be decoded.
        """
        if not self.state_file.exists():
            logger.info("No state file at %s", self.state_file)
            return None

        try:
            raw = self.state_file.read_bytes()
            snapshot = self._decode(raw)
        except (OSError, MalformedStateError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.state_file, e)
            return None

        logger.info("Loaded state from %s (%d known rooms)", self.state_file, len(snapshot.known_room_ids))
        return snapshot

    def save(self, snapshot: MonitorSnapshot) -> bool:
        """
        Writes the full snapshot.
        The file is replaced atomically, so readers see either the old or the new state.
        """
        try:
            self._write(snapshot)
        except PersistError as e:
            logger.error("Error saving state: %s", e)
            return False

        logger.info("Saved state to %s", self.state_file)
        return True

    @staticmethod
    def _decode(raw: bytes) -> MonitorSnapshot:
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise MalformedStateError(f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedStateError(f"expected an object, got {type(data).__name__}")

        try:
            return MonitorSnapshot.model_validate(data)
        except ValidationError as e:
            raise MalformedStateError(str(e)) from e

    def _write(self, snapshot: MonitorSnapshot) -> None:
        payload = json.dumps(snapshot.model_dump(mode="json", by_alias=True), indent=2)
        directory = self.state_file.parent

        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.state_file.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.state_file)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistError(f"cannot write {self.state_file}: {e}") from e
