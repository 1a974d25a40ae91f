"""MNDP (MikroTik Neighbor Discovery Protocol) listener, pure-Python implementation.

A receive-only library for discovering MikroTik devices that announce
themselves via MNDP UDP broadcasts on port 5678.

This package has no external dependencies beyond the Python standard library.

Quick start:
    from mndp import MNDPListener

    listener = MNDPListener()
    listener.start()
    for device in listener.devices:
        print(f"{device.identity} ({device.board}) at {device.ip_address}")
"""

from mndp.config import ListenerOptions, load_options
from mndp.errors import (
    BindError,
    DecodeError,
    ListenerStateError,
    MNDPError,
    ReceiveError,
)
from mndp.events import EventStream, StreamClosed
from mndp.parsers import decode_packet, encode_device
from mndp.protocol import DEFAULT_PORT, Attribute, TLVEntry, encode_packet
from mndp.service import ListenerState, MNDPListener
from mndp.types import ListenerStarted, ListenerStopped, MNDPDevice

__all__ = [
    "Attribute",
    "BindError",
    "DEFAULT_PORT",
    "DecodeError",
    "EventStream",
    "ListenerOptions",
    "ListenerStarted",
    "ListenerState",
    "ListenerStateError",
    "ListenerStopped",
    "MNDPDevice",
    "MNDPError",
    "MNDPListener",
    "ReceiveError",
    "StreamClosed",
    "TLVEntry",
    "decode_packet",
    "encode_device",
    "encode_packet",
    "load_options",
]
