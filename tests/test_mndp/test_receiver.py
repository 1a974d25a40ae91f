"""Tests for the packet receive loop.

Uses a fake socket so that receive failures can be injected.
"""

import errno
import socket
import struct
import threading
import time
from unittest.mock import patch

from mndp.errors import DecodeError, ReceiveError
from mndp.events import EventStream
from mndp.receiver import PacketReceiver

HEADER = b"\x00\x00\x00\x00"


def _announce(identity: bytes) -> bytes:
    return HEADER + struct.pack(">HH", 5, len(identity)) + identity


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeSocket:
    """Replays a script of datagrams and errors, then idles."""

    def __init__(self, script):
        self._script = list(script)
        self._lock = threading.Lock()
        self.closed = False
        self.timeout = None

    def settimeout(self, timeout):
        self.timeout = timeout

    def fileno(self):
        return -1 if self.closed else 3

    def close(self):
        self.closed = True

    def recvfrom_into(self, buf):
        with self._lock:
            event = self._script.pop(0) if self._script else None
        if event is None:
            if self.closed:
                raise OSError(errno.EBADF, "Bad file descriptor")
            time.sleep(0.01)
            raise socket.timeout("timed out")
        if isinstance(event, BaseException):
            raise event
        data, address = event
        buf[:len(data)] = data
        return len(data), address


class Collector:
    def __init__(self):
        self.devices = []
        self.errors = []
        self._lock = threading.Lock()

    def on_device(self, device):
        with self._lock:
            self.devices.append(device)

    def on_error(self, error):
        with self._lock:
            self.errors.append(error)


def _run(script, **kwargs):
    sock = FakeSocket(script)
    collector = Collector()
    receiver = PacketReceiver(
        sock, collector.on_device, collector.on_error,
        poll_interval=0.05, **kwargs,
    )
    receiver.start()
    return sock, collector, receiver


class TestPacketReceiver:
    def test_sets_poll_timeout(self):
        sock, _, receiver = _run([])
        try:
            assert sock.timeout == 0.05
        finally:
            receiver.stop()

    def test_decodes_datagrams(self):
        script = [
            (_announce(b"one"), ("10.0.0.1", 5678)),
            (_announce(b"two"), ("10.0.0.2", 5678)),
        ]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: len(collector.devices) == 2)
        finally:
            receiver.stop()
        found = {(d.ip_address, d.identity) for d in collector.devices}
        assert found == {("10.0.0.1", "one"), ("10.0.0.2", "two")}
        assert collector.errors == []

    def test_buffer_reuse_does_not_alias(self):
        """A long datagram followed by a short one must not bleed through."""
        script = [
            (_announce(b"a-very-long-identity"), ("10.0.0.1", 5678)),
            (_announce(b"b"), ("10.0.0.2", 5678)),
        ]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: len(collector.devices) == 2)
        finally:
            receiver.stop()
        by_ip = {d.ip_address: d.identity for d in collector.devices}
        assert by_ip == {"10.0.0.1": "a-very-long-identity", "10.0.0.2": "b"}

    def test_short_datagram_ignored(self):
        script = [
            (b"\x00" * 7, ("10.0.0.1", 5678)),
            (_announce(b"after"), ("10.0.0.2", 5678)),
        ]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: len(collector.devices) == 1)
            time.sleep(0.05)
        finally:
            receiver.stop()
        assert collector.devices[0].identity == "after"
        assert collector.errors == []

    def test_corrupt_datagram_reports_one_error(self):
        corrupt = HEADER + struct.pack(">HH", 5, 40) + b"short"
        script = [
            (corrupt, ("10.0.0.9", 5678)),
            (_announce(b"ok"), ("10.0.0.2", 5678)),
        ]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: len(collector.devices) == 1 and len(collector.errors) == 1)
        finally:
            receiver.stop()
        assert isinstance(collector.errors[0], DecodeError)
        assert collector.errors[0].source == "10.0.0.9"
        assert collector.devices[0].identity == "ok"

    def test_unexpected_decode_failure_converted(self):
        script = [(_announce(b"x"), ("10.0.0.3", 5678))]
        with patch("mndp.receiver.decode_packet", side_effect=struct.error("boom")):
            _, collector, receiver = _run(script)
            try:
                assert _wait_for(lambda: len(collector.errors) == 1)
            finally:
                receiver.stop()
        error = collector.errors[0]
        assert isinstance(error, DecodeError)
        assert error.source == "10.0.0.3"
        assert isinstance(error.__cause__, struct.error)
        assert receiver.running is False

    def test_transient_receive_error_continues(self):
        script = [
            ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused"),
            (_announce(b"later"), ("10.0.0.4", 5678)),
        ]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: len(collector.devices) == 1)
            assert receiver.running
        finally:
            receiver.stop()
        assert len(collector.errors) == 1
        error = collector.errors[0]
        assert isinstance(error, ReceiveError)
        assert error.terminal is False
        assert isinstance(error.__cause__, ConnectionRefusedError)

    def test_unusable_socket_terminates_loop(self):
        script = [OSError(errno.EBADF, "Bad file descriptor")]
        _, collector, receiver = _run(script)
        try:
            assert _wait_for(lambda: not receiver.running)
        finally:
            receiver.stop()
        assert len(collector.errors) == 1
        assert collector.errors[0].terminal is True

    def test_closing_socket_exits_silently(self):
        sock, collector, receiver = _run([])
        receiver.request_stop()
        sock.close()
        receiver.stop()
        assert not receiver.running
        assert collector.errors == []

    def test_stop_is_idempotent(self):
        _, _, receiver = _run([])
        receiver.stop()
        receiver.stop()
        assert not receiver.running

    def test_stop_before_start(self):
        receiver = PacketReceiver(FakeSocket([]), lambda d: None, lambda e: None)
        receiver.stop()
        assert not receiver.running

    def test_full_error_stream_does_not_block_reads(self):
        """Unread errors must not stop the loop from reading datagrams."""
        refused = [ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused") for _ in range(6)]
        script = refused + [(_announce(b"still-read"), ("10.0.0.5", 5678))]
        errors = EventStream(5)
        devices = []
        sock = FakeSocket(script)
        receiver = PacketReceiver(sock, devices.append, errors.put, poll_interval=0.05)
        receiver.start()
        try:
            assert _wait_for(lambda: len(devices) == 1)
            assert receiver.running
        finally:
            errors.close()
            receiver.stop()
        assert devices[0].identity == "still-read"
        assert len(errors) == 5
