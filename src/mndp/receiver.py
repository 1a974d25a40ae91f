"""Blocking UDP receive loop for MNDP announcements.

The receiver reads datagrams into a reusable buffer, copies each one out
and hands the copy to a worker pool for decoding, so the next read starts
immediately. Results are reported through callbacks; the receiver itself
holds no event streams.
"""

from __future__ import annotations

import errno
import socket
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from mndp.errors import DecodeError, MNDPError, ReceiveError
from mndp.parsers import decode_packet
from mndp.protocol import RECEIVE_BUFFER_SIZE
from mndp.types import MNDPDevice

# errno values meaning the descriptor itself is gone
_UNUSABLE_ERRNOS = frozenset({errno.EBADF, errno.ENOTSOCK})


class PacketReceiver:
    """Runs the receive loop for a bound socket on a background thread.

    The socket is owned by the caller. The loop polls with a timeout so
    that a stop request is noticed even on platforms where closing a
    socket does not interrupt a blocked read.

    Args:
        sock: Bound UDP socket.
        on_device: Called from a worker thread with each decoded device.
        on_error: Called from a worker thread with every ReceiveError and
            DecodeError. A terminal ReceiveError is reported from the loop
            thread just before it exits.
        max_workers: Maximum number of concurrent decode workers.
        poll_interval: Seconds between stop checks while idle.
    """

    def __init__(
        self,
        sock: socket.socket,
        on_device: Callable[[MNDPDevice], object],
        on_error: Callable[[MNDPError], object],
        max_workers: int = 32,
        poll_interval: float = 0.5,
    ) -> None:
        self._sock = sock
        self._on_device = on_device
        self._on_error = on_error
        self._poll_interval = poll_interval
        self._closing = threading.Event()
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="mndp-decode",
        )
        self._thread = threading.Thread(
            target=self._run,
            name="mndp-receiver",
            daemon=True,
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._sock.settimeout(self._poll_interval)
        self._thread.start()

    def request_stop(self) -> None:
        """Mark the loop as closing so a failing read is treated as shutdown."""
        self._closing.set()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for it.

        Safe to call before start() and more than once. Decodes already
        running are left to finish; queued ones are cancelled.
        """
        self.request_stop()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            if timeout is None:
                timeout = self._poll_interval * 2 + 1.0
            self._thread.join(timeout)
        self._pool.shutdown(wait=False, cancel_futures=True)

    def _is_unusable(self, exc: OSError) -> bool:
        return self._sock.fileno() == -1 or exc.errno in _UNUSABLE_ERRNOS

    def _run(self) -> None:
        buf = bytearray(RECEIVE_BUFFER_SIZE)
        while not self._closing.is_set():
            try:
                nbytes, address = self._sock.recvfrom_into(buf)
            except socket.timeout:
                continue
            except OSError as e:
                if self._closing.is_set():
                    # Socket closed by stop()
                    return
                terminal = self._is_unusable(e)
                err = ReceiveError(e, terminal=terminal)
                err.__cause__ = e
                if terminal:
                    self._on_error(err)
                    return
                if not self._dispatch(self._on_error, err):
                    return
                continue

            # The buffer is reused by the next read
            packet = bytes(buf[:nbytes])
            if not self._dispatch(self._decode, packet, address[0]):
                return

    def _dispatch(self, fn, *args) -> bool:
        """Run fn on the worker pool; publishing never blocks the read loop."""
        try:
            self._pool.submit(fn, *args)
        except RuntimeError:
            # Pool already shut down
            return False
        return True

    def _decode(self, packet: bytes, ip_address: str) -> None:
        try:
            device = decode_packet(packet, ip_address)
        except DecodeError as e:
            self._on_error(e)
            return
        except Exception as e:
            err = DecodeError(f"unexpected failure while decoding packet: {e!r}", source=ip_address)
            err.__cause__ = e
            self._on_error(err)
            return
        if device is not None:
            self._on_device(device)
