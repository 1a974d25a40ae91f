"""MNDP data types for discovery results and listener notifications.

These frozen dataclasses are created once per event and handed to
whichever consumer reads them off an event stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class MNDPDevice:
    """A device announcement decoded from a single MNDP datagram.

    MNDP carries no IP address attribute; ip_address is taken from the
    datagram's source address. Text attributes that were absent are
    empty strings. Text values are decoded as UTF-8 without validation:
    invalid byte sequences become U+FFFD replacement characters, so such
    values do not re-encode to the original bytes.

    Attributes:
        ip_address: Source address of the datagram.
        mac_address: Raw hardware address (type 1), None if absent.
        identity: Configured device identity (type 5).
        version: RouterOS version (type 7).
        platform: Platform name, e.g. "MikroTik" (type 8).
        uptime: Device uptime (type 10), zero if absent or malformed.
        board: Hardware board model, e.g. "RB4011iGS+" (type 12).
    """

    ip_address: str
    mac_address: bytes | None = None
    identity: str = ""
    version: str = ""
    platform: str = ""
    uptime: timedelta = timedelta(0)
    board: str = ""

    @property
    def mac(self) -> str | None:
        """MAC address as colon-separated lowercase hex, or None."""
        if self.mac_address is None:
            return None
        return ":".join(f"{b:02x}" for b in self.mac_address)

    @property
    def uptime_seconds(self) -> int:
        return int(self.uptime.total_seconds())

    def to_dict(self) -> dict:
        """Return a JSON-serialisable mapping of this device."""
        return {
            "ip_address": self.ip_address,
            "mac_address": self.mac,
            "identity": self.identity,
            "version": self.version,
            "platform": self.platform,
            "uptime": self.uptime_seconds,
            "board": self.board,
        }


@dataclass(frozen=True)
class ListenerStarted:
    """Published once when the listener socket is bound.

    Attributes:
        address: Bound local address as "host:port" ("[host]:port" for IPv6).
    """

    address: str


@dataclass(frozen=True)
class ListenerStopped:
    """Published once when the listener shuts down.

    Attributes:
        address: Address the listener was bound to, None if it never bound.
    """

    address: str | None = None
