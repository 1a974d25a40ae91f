"""Error types published on a listener's error stream.

Every fault observed by a running listener is converted to one of these
values and published; none of them propagate out of the receive loop or
a decode worker. ListenerStateError is the exception: it signals misuse
of the API and is raised synchronously to the caller.
"""

from __future__ import annotations


class MNDPError(Exception):
    """Base class for all MNDP listener errors."""


class BindError(MNDPError):
    """The listening socket could not be bound. Fatal for that start()."""

    def __init__(self, address: str, reason: object) -> None:
        self.address = address
        super().__init__(f"failed to bind to {address}: {reason}")


class ReceiveError(MNDPError):
    """A receive call failed for a reason other than deliberate shutdown.

    Attributes:
        terminal: True when the socket is no longer usable and the
            receive loop has exited.
    """

    def __init__(self, reason: object, terminal: bool = False) -> None:
        self.terminal = terminal
        super().__init__(f"failed to read from socket: {reason}")


class DecodeError(MNDPError, ValueError):
    """A datagram could not be decoded. Only that datagram is dropped.

    Attributes:
        source: IP address the datagram came from, when known.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.source:
            return f"{message} [from {self.source}]"
        return message


class ListenerStateError(MNDPError, RuntimeError):
    """An operation is not valid in the listener's current state."""
