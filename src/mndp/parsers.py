"""MNDP TLV value parsers.

decode_packet() turns one received datagram into an MNDPDevice. It is a
pure function: no I/O and no shared state, so it is safe to run for many
datagrams concurrently.

See protocol.py for the wire format.
"""

from __future__ import annotations

import struct
from datetime import timedelta

from mndp.errors import DecodeError
from mndp.protocol import (
    HEADER_SIZE,
    MIN_PACKET_SIZE,
    Attribute,
    TLVEntry,
    encode_packet,
    iter_tlvs,
)
from mndp.types import MNDPDevice

_TEXT_FIELDS = {
    Attribute.IDENTITY: "identity",
    Attribute.VERSION: "version",
    Attribute.PLATFORM: "platform",
    Attribute.BOARD: "board",
}


def parse_text(data: bytes) -> str:
    """Decode a text attribute as UTF-8.

    Values are not validated: invalid sequences are replaced rather than
    rejected.
    """
    return data.decode("utf-8", errors="replace")


def parse_uptime(data: bytes) -> timedelta:
    """Parse the uptime attribute (4-byte little-endian seconds).

    Any other length yields a zero uptime.
    """
    if len(data) != 4:
        return timedelta(0)
    (seconds,) = struct.unpack("<I", data)
    return timedelta(seconds=seconds)


def decode_packet(data: bytes, ip_address: str) -> MNDPDevice | None:
    """Decode a raw MNDP datagram into an MNDPDevice.

    The 4-byte header is skipped without interpretation. Attributes are
    read until fewer than 4 bytes remain; if a type appears more than
    once the last occurrence wins. Unknown types are skipped.

    Args:
        data: Datagram payload.
        ip_address: Source address of the datagram.

    Returns:
        The decoded device, or None if the datagram is shorter than
        MIN_PACKET_SIZE (broadcast noise, not an error).

    Raises:
        DecodeError: If an attribute declares more bytes than remain.
            No partial device is returned in that case.
    """
    if len(data) < MIN_PACKET_SIZE:
        return None

    fields: dict = {}
    try:
        for entry in iter_tlvs(data, HEADER_SIZE):
            if entry.type == Attribute.MAC_ADDRESS:
                fields["mac_address"] = entry.value
            elif entry.type == Attribute.UPTIME:
                # A malformed uptime is ignored, not reset to zero
                if len(entry.value) == 4:
                    fields["uptime"] = parse_uptime(entry.value)
            elif entry.type in _TEXT_FIELDS:
                fields[_TEXT_FIELDS[entry.type]] = parse_text(entry.value)
    except DecodeError as e:
        e.source = ip_address
        raise

    return MNDPDevice(ip_address=ip_address, **fields)


def encode_device(device: MNDPDevice, header: bytes = b"\x00" * HEADER_SIZE) -> bytes:
    """Encode the recognised attributes of a device back to an MNDP packet.

    Empty text attributes and a missing MAC address are omitted. Uptime
    is always written, truncated to whole seconds.
    """
    entries: list[TLVEntry] = []
    if device.mac_address is not None:
        entries.append(TLVEntry(Attribute.MAC_ADDRESS, device.mac_address))
    for attr, name in _TEXT_FIELDS.items():
        text = getattr(device, name)
        if text:
            entries.append(TLVEntry(attr, text.encode("utf-8")))
    entries.append(TLVEntry(Attribute.UPTIME, struct.pack("<I", device.uptime_seconds)))
    return encode_packet(entries, header)
