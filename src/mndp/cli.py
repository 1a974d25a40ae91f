"""CLI entry point for mndp-listen.

Listens for MNDP announcements and prints one line per device until
interrupted (SIGINT/SIGTERM) or until --timeout expires.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from dataclasses import replace

from mndp.config import FAMILIES, ListenerOptions, load_options
from mndp.service import MNDPListener
from mndp.types import MNDPDevice


def _load_options(args: argparse.Namespace) -> ListenerOptions:
    """Load options from --config, then apply command-line overrides."""
    options = ListenerOptions()
    if args.config:
        options = load_options(args.config)
    overrides = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.host is not None:
        overrides["host"] = args.host
    if args.family is not None:
        overrides["family"] = args.family
    return replace(options, **overrides)


def format_device(device: MNDPDevice) -> str:
    """Format a device as a single human-readable line."""
    uptime = str(device.uptime) if device.uptime else "-"
    return "  ".join([
        f"{device.ip_address:<15}",
        f"{device.mac or '-':<17}",
        device.identity or "-",
        device.board or "-",
        device.version or "-",
        f"up {uptime}",
    ])


def _print_devices(listener: MNDPListener, as_json: bool) -> None:
    for device in listener.devices:
        if as_json:
            print(json.dumps(device.to_dict(), sort_keys=True), flush=True)
        else:
            print(format_device(device), flush=True)


def _print_errors(listener: MNDPListener) -> None:
    for error in listener.errors:
        print(f"Error: {error}", file=sys.stderr, flush=True)


def cmd_listen(args: argparse.Namespace) -> int:
    """Run a listener until interrupted or the timeout expires."""
    try:
        options = _load_options(args)
    except FileNotFoundError:
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    listener = MNDPListener(options)
    done = threading.Event()

    def _request_shutdown(_signum, _frame):
        done.set()

    previous_handlers = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[signum] = signal.signal(signum, _request_shutdown)

    printers = [
        threading.Thread(target=_print_devices, args=(listener, args.json), daemon=True),
        threading.Thread(target=_print_errors, args=(listener,), daemon=True),
    ]
    for thread in printers:
        thread.start()

    try:
        failed = not listener.start()
        if not failed:
            if args.verbose:
                started = listener.started.get()
                print(f"Listening for MNDP announcements on {started.address}", file=sys.stderr)
            done.wait(args.timeout)
    finally:
        listener.stop()
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
    for thread in printers:
        thread.join()

    if args.verbose and not failed:
        print("Listener stopped.", file=sys.stderr)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mndp-listen",
        description="Discover MikroTik devices via MNDP broadcasts",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to a TOML config file with a [listener] table",
    )
    parser.add_argument("--port", type=int, help="UDP port (default: 5678)")
    parser.add_argument("--host", help="Address to bind to (default: all addresses)")
    parser.add_argument(
        "--family", choices=sorted(FAMILIES),
        help="Address family (default: udp4)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print one JSON object per device",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Report listener start and stop on stderr",
    )

    args = parser.parse_args(argv)
    return cmd_listen(args)


if __name__ == "__main__":
    sys.exit(main())
