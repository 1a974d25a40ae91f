"""MNDP packet encoding and decoding.

Implements the binary wire format of the MikroTik Neighbor Discovery
Protocol. The format is: 4-byte header + TLV entries (no end marker).

TLV type and length fields are big-endian (network byte order). The
uptime attribute value is the one exception: it is little-endian.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import IntEnum

from mndp.errors import DecodeError

DEFAULT_PORT = 5678

HEADER_SIZE = 4
TLV_HEADER_SIZE = 4
# Header plus at least one TLV header
MIN_PACKET_SIZE = HEADER_SIZE + TLV_HEADER_SIZE

# Standard Ethernet MTU
RECEIVE_BUFFER_SIZE = 1500


class Attribute(IntEnum):
    """MNDP TLV attribute types decoded by this package.

    Other type codes appear in real announcements (interface name,
    software ID, IPv6 address, ...). They are valid and are skipped
    using their declared length.
    """

    MAC_ADDRESS = 1
    IDENTITY = 5
    VERSION = 7
    PLATFORM = 8
    UPTIME = 10
    BOARD = 12


@dataclass(frozen=True)
class TLVEntry:
    """A single Type-Length-Value entry in an MNDP packet.

    Attributes:
        type: Attribute identifier, an Attribute member when known.
        value: Raw bytes of the attribute value.
    """

    type: Attribute | int
    value: bytes = b""

    def encode(self) -> bytes:
        """Encode this TLV entry to wire format.

        Returns:
            4-byte header (type + length) followed by value bytes.
        """
        return struct.pack(">HH", int(self.type), len(self.value)) + self.value

    @classmethod
    def decode(cls, data: bytes, offset: int = 0) -> tuple[TLVEntry, int]:
        """Decode one TLV entry starting at ``offset`` in a byte buffer.

        Args:
            data: Buffer containing a TLV header at ``offset``.
            offset: Position of the TLV header.

        Returns:
            (TLVEntry, bytes_consumed) tuple.

        Raises:
            DecodeError: If the buffer is too short for the TLV header or
                for the declared value length.
        """
        remaining = len(data) - offset
        if remaining < TLV_HEADER_SIZE:
            msg = f"truncated TLV header: need {TLV_HEADER_SIZE} bytes, have {remaining}"
            raise DecodeError(msg)
        type_raw, length = struct.unpack_from(">HH", data, offset)
        start = offset + TLV_HEADER_SIZE
        available = len(data) - start
        if available < length:
            msg = (
                f"corrupt packet: declared length exceeds remaining data "
                f"(type {type_raw}, expected length {length}, have {available})"
            )
            raise DecodeError(msg)
        value = bytes(data[start:start + length])
        try:
            attr_type = Attribute(type_raw)
        except ValueError:
            attr_type = type_raw
        return cls(type=attr_type, value=value), TLV_HEADER_SIZE + length


def iter_tlvs(data: bytes, offset: int = HEADER_SIZE) -> Iterator[TLVEntry]:
    """Yield TLV entries from ``offset`` while a full TLV header remains.

    Trailing bytes shorter than a TLV header are ignored.

    Raises:
        DecodeError: If an entry declares more bytes than remain.
    """
    while len(data) - offset >= TLV_HEADER_SIZE:
        entry, consumed = TLVEntry.decode(data, offset)
        offset += consumed
        yield entry


def encode_packet(
    entries: Iterable[TLVEntry],
    header: bytes = b"\x00" * HEADER_SIZE,
) -> bytes:
    """Encode a full MNDP announcement (header + TLV entries).

    Raises:
        ValueError: If the header is not exactly 4 bytes.
    """
    if len(header) != HEADER_SIZE:
        raise ValueError(f"MNDP header must be {HEADER_SIZE} bytes, got {len(header)}: {header!r}")
    return header + b"".join(entry.encode() for entry in entries)
