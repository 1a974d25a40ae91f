"""MNDP discovery service: socket lifecycle and event streams.

Usage:
    listener = MNDPListener()
    listener.start()
    for device in listener.devices:
        print(f"{device.identity} at {device.ip_address}")

Another thread (or a signal handler) calls listener.stop(), which ends the
iteration above once buffered devices have been read.

A listener is single-use: CREATED -> LISTENING -> STOPPED. A failed bind
leaves it in CREATED. The state stays LISTENING while stop() tears down
and becomes STOPPED once every stream is closed.
"""

from __future__ import annotations

import enum
import socket
import threading

from mndp.config import ListenerOptions
from mndp.errors import BindError, ListenerStateError, MNDPError
from mndp.events import EventStream
from mndp.receiver import PacketReceiver
from mndp.types import ListenerStarted, ListenerStopped, MNDPDevice

DEVICE_STREAM_SIZE = 10
ERROR_STREAM_SIZE = 5


class ListenerState(enum.Enum):
    CREATED = "created"
    LISTENING = "listening"
    STOPPED = "stopped"


def format_address(sockaddr: tuple) -> str:
    """Format a socket address as "host:port" ("[host]:port" for IPv6)."""
    host, port = sockaddr[0], sockaddr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class MNDPListener:
    """Listens for MNDP announcements and publishes decoded devices.

    Results are delivered on four EventStreams:
        devices: MNDPDevice per successfully decoded datagram.
        errors: BindError, ReceiveError or DecodeError values.
        started: one ListenerStarted after a successful bind.
        stopped: one ListenerStopped on shutdown.

    All four are closed by stop(). Devices decoded from datagrams that
    arrived close together may be published in any order.

    Args:
        options: Socket options (default: port 5678 on all IPv4 addresses).
        max_workers: Maximum number of concurrent decode workers.
        poll_interval: Receive timeout used to notice stop requests.
    """

    def __init__(
        self,
        options: ListenerOptions | None = None,
        max_workers: int = 32,
        poll_interval: float = 0.5,
    ) -> None:
        self._options = (options or ListenerOptions()).resolved()
        self._max_workers = max_workers
        self._poll_interval = poll_interval
        self._state = ListenerState.CREATED
        self._lock = threading.RLock()
        self._lock_owner: int | None = None
        # One-shot stop latch; set before the lock is taken
        self._stop_requested = threading.Event()
        self._sock: socket.socket | None = None
        self._receiver: PacketReceiver | None = None
        self._local_address: str | None = None

        self.devices: EventStream[MNDPDevice] = EventStream(DEVICE_STREAM_SIZE, "devices")
        self.errors: EventStream[MNDPError] = EventStream(ERROR_STREAM_SIZE, "errors")
        self.started: EventStream[ListenerStarted] = EventStream(1, "started")
        self.stopped: EventStream[ListenerStopped] = EventStream(1, "stopped")

    def __repr__(self) -> str:
        return f"<MNDPListener {self.bind_address} {self._state.value}>"

    @property
    def options(self) -> ListenerOptions:
        return self._options

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def bind_address(self) -> str:
        return format_address((self._options.host, self._options.port))

    @property
    def local_address(self) -> str | None:
        """Actual bound address, None until start() succeeds."""
        return self._local_address

    def _bind(self) -> socket.socket:
        sock = socket.socket(self._options.address_family, socket.SOCK_DGRAM)
        try:
            sock.bind((self._options.host, self._options.port))
        except OSError:
            sock.close()
            raise
        return sock

    def start(self) -> bool:
        """Bind the socket and start the receive loop in the background.

        Never blocks on the network. A bind failure is published on the
        errors stream (dropped if that stream is full) and leaves the
        listener in CREATED.

        Returns:
            True if the listener is now LISTENING.

        Raises:
            ListenerStateError: If the listener was already started or stopped.
        """
        with self._lock:
            if self._state is not ListenerState.CREATED or self._stop_requested.is_set():
                raise ListenerStateError(f"cannot start a listener in state {self._state.value!r}")
            self._lock_owner = threading.get_ident()
            try:
                bind_error = self._start_locked()
            finally:
                self._lock_owner = None

        if bind_error is not None:
            self.errors.put(bind_error, timeout=0)
        if self._stop_requested.is_set():
            # stop() was called from a signal handler while we held the lock
            self._shutdown()
        return self._state is ListenerState.LISTENING

    def _start_locked(self) -> BindError | None:
        try:
            sock = self._bind()
        except OSError as e:
            bind_error = BindError(self.bind_address, e)
            bind_error.__cause__ = e
            return bind_error

        self._sock = sock
        self._local_address = format_address(sock.getsockname())
        self._state = ListenerState.LISTENING
        self.started.put(ListenerStarted(self._local_address))
        self._receiver = PacketReceiver(
            sock,
            on_device=self.devices.put,
            on_error=self.errors.put,
            max_workers=self._max_workers,
            poll_interval=self._poll_interval,
        )
        self._receiver.start()
        return None

    def stop(self) -> None:
        """Shut down the listener and close all event streams.

        Only the first call has any effect. Closing the socket ends the
        receive loop; stop() waits for that loop to exit.

        Safe to call from a signal handler. If the handler interrupts
        start() on the same thread, shutdown happens as start() returns.
        """
        if self._stop_requested.is_set():
            return
        self._stop_requested.set()
        if self._lock_owner == threading.get_ident():
            return
        self._shutdown()

    def _shutdown(self) -> None:
        with self._lock:
            if self._state is ListenerState.STOPPED:
                return
            if self._receiver is not None:
                self._receiver.request_stop()
            if self._sock is not None:
                self._sock.close()
            if self._receiver is not None:
                self._receiver.stop()

            self.stopped.put(ListenerStopped(self._local_address))
            for stream in (self.devices, self.errors, self.started, self.stopped):
                stream.close()
            self._state = ListenerState.STOPPED

    def __enter__(self) -> MNDPListener:
        self.start()
        return self

    def __exit__(self, *_exc) -> None:
        self.stop()
