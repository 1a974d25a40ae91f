"""Listener configuration, optionally loaded from a TOML file.

Example mndp.toml:

    [listener]
    port = 5678
    host = "0.0.0.0"
    family = "udp4"
"""

from __future__ import annotations

import socket
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

from mndp.protocol import DEFAULT_PORT

FAMILIES = {
    "udp4": socket.AF_INET,
    "udp6": socket.AF_INET6,
}

_ANY_HOST = {
    "udp4": "0.0.0.0",
    "udp6": "::",
}


@dataclass(frozen=True)
class ListenerOptions:
    """Socket options for an MNDP listener.

    Attributes:
        port: UDP port to listen on. 0 picks an ephemeral port.
        host: Address to bind to. None means the wildcard address of
            the selected family.
        family: "udp4" or "udp6".
    """

    port: int = DEFAULT_PORT
    host: str | None = None
    family: str = "udp4"

    def __post_init__(self) -> None:
        if self.family not in FAMILIES:
            raise ValueError(f"family must be one of {sorted(FAMILIES)}, got {self.family!r}")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port must be an integer in 0..65535, got {self.port!r}")

    @property
    def address_family(self) -> socket.AddressFamily:
        return FAMILIES[self.family]

    def resolved(self) -> ListenerOptions:
        """Return a copy with the bind host filled in."""
        host = self.host
        if not host or (self.family == "udp6" and host == "0.0.0.0"):
            host = _ANY_HOST[self.family]
        return replace(self, host=host)


def options_from_dict(data: dict) -> ListenerOptions:
    """Build ListenerOptions from the [listener] table of parsed TOML."""
    section = data.get("listener", {})
    return ListenerOptions(
        port=section.get("port", DEFAULT_PORT),
        host=section.get("host") or None,
        family=section.get("family", "udp4"),
    )


def load_options(config_path: Path | str) -> ListenerOptions:
    """Load listener options from a TOML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If an option is invalid.
    """
    with open(Path(config_path), "rb") as f:
        data = tomllib.load(f)
    return options_from_dict(data)
