"""
Exception types raised by the room monitor.
Poll cycles catch all of these; none of them is meant to stop the scheduler.
"""


class RoomMonitorError(Exception):
    """Base class for room monitor errors."""


class TransientFetchError(RoomMonitorError):
    """Network failure, timeout or bad status while querying the homeserver."""


class AccessDeniedError(RoomMonitorError):
    """The homeserver refused access to a space or room (401/403)."""


class MalformedResponseError(RoomMonitorError):
    """The homeserver answered with a body that could not be parsed."""


class MalformedStateError(RoomMonitorError):
    """The persisted snapshot file is corrupt or has an unexpected shape."""


class PersistError(RoomMonitorError):
    """The snapshot could not be written to disk."""


class NotifyError(RoomMonitorError):
    """A notification message could not be delivered."""
