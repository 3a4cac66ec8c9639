#!/usr/bin/env python3
"""
KV-Client Command Line Tool

Sends commands to a server and prints the replies.

Usage:
    kv-client PING                          # One command, then exit
    kv-client SET greeting hello            # Arguments are sent as bulk strings
    kv-client --port 6380 GET greeting      # Custom port
    kv-client --url redis://cache:6379 DEL k
    kv-client                               # Interactive prompt
    kv-client --debug PING                  # Enable debug logging

Environment Variables:
    KV_CLIENT_HOST      - Default server address
    KV_CLIENT_PORT      - Default server port
    KV_CLIENT_DEBUG     - Enable debug mode (true/false)
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config.settings import settings
from .errors import ClientError, ServerError
from .network.connection import Connection
from .protocol.values import Array, BulkString, Integer, SimpleString, Value

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

logger = logging.getLogger(__name__)

HELP_TEXT = """
Enter any server command, e.g.:
  PING
  SET greeting hello
  GET greeting

Client Commands:
----------------
  help                      Show this help message
  exit / quit               Exit the client
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="KV-Client: send commands to a key-value server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Server address",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Server port",
    )

    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Connection URL (overrides --host/--port), e.g. redis://host:6379",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.CONNECT_TIMEOUT,
        help="Connect timeout in seconds",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    parser.add_argument(
        "command",
        nargs="*",
        help="Command and arguments to send; omit for an interactive prompt",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def format_reply(value: Value, indent: int = 0) -> str:
    """
    Render a reply the way interactive clients usually show it.

    Examples:
        >>> format_reply(Integer(3))
        '(integer) 3'
        >>> format_reply(BulkString(b"bar"))
        '"bar"'
        >>> format_reply(Array((SimpleString("OK"), BulkString(None))))
        '1) OK\\n2) (nil)'
    """
    if isinstance(value, Integer):
        return f"(integer) {value.value}"

    if isinstance(value, SimpleString):
        return value.value

    if isinstance(value, BulkString):
        if value.is_null:
            return "(nil)"
        return '"' + value.value.decode(settings.ENCODING, errors="backslashreplace") + '"'

    if isinstance(value, Array):
        if value.is_null:
            return "(nil)"
        if not len(value):
            return "(empty array)"

        width = len(str(len(value)))
        lines = []
        for number, item in enumerate(value, 1):
            prefix = f"{number:>{width}}) "
            pad = "" if number == 1 else " " * indent
            lines.append(pad + prefix + format_reply(item, indent + len(prefix)))
        return "\n".join(lines)

    raise TypeError(f"not a reply value: {value!r}")


def run_once(conn: Connection, command: List[str]) -> int:
    """Send one command, print its reply and return the exit code."""
    try:
        reply = conn.send(command)
    except ServerError as exc:
        print(f"(error) {exc.message}")
        return 1

    print(format_reply(reply))
    return 0


def interactive(conn: Connection, address: str) -> None:
    """Read commands from the prompt until exit or end of input.

    Each line is sent as an inline command, so the server splits it into
    arguments.
    """
    print("KV-Client")
    print("=========")
    print(f"Connected to {address}. Type 'help' for commands.\n")

    try:
        while True:
            try:
                line = input(f"{address}> ").strip()
            except EOFError:
                print("\nGoodbye!")
                break

            if not line:
                continue

            lower_cmd = line.lower()
            if lower_cmd == "help":
                print(HELP_TEXT)
                continue
            if lower_cmd in ("exit", "quit"):
                print("Goodbye!")
                break

            try:
                print(format_reply(conn.send(line)))
            except ServerError as exc:
                print(f"(error) {exc.message}")

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the command line client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    address = args.url or f"{args.host}:{args.port}"
    try:
        if args.url:
            conn = Connection.from_url(args.url, connect_timeout=args.timeout)
        else:
            conn = Connection.connect(args.host, args.port, connect_timeout=args.timeout)
    except (OSError, ValueError) as exc:
        logger.error(f"Could not connect to {address}: {exc}")
        sys.exit(1)

    with conn:
        try:
            if args.command:
                sys.exit(run_once(conn, args.command))
            interactive(conn, address)
        except ClientError as exc:
            logger.error(f"Connection error: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()
