"""i3wm CLI — run with: python3 -m i3wm [-t TYPE] [-m EVENT ...] [payload ...]"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from .client import connect
from .errors import ApplicationFailure, IpcError
from .events import CHANNELS
from .protocol import MessageType

TYPE_ALIASES = {
    "command": MessageType.RUN_COMMAND,
    "tick": MessageType.SEND_TICK,
}


def message_type(value: str) -> int:
    """Parse -t: a number, an alias, or a MessageType name with or without GET_."""
    key = value.strip().lower()
    if key.isdigit():
        return int(key)
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    for candidate in (key.upper(), f"GET_{key.upper()}"):
        if candidate in MessageType.__members__:
            return MessageType[candidate]
    raise argparse.ArgumentTypeError(f"unknown message type: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="i3wm",
        description="Send a message to i3 over IPC and print the reply",
    )
    parser.add_argument("payload", nargs="*", help="Message payload (joined with spaces)")
    parser.add_argument(
        "--type", "-t", type=message_type, default=MessageType.RUN_COMMAND,
        help="Message type: command, get_tree, workspaces, 4, ... (default: command)",
    )
    parser.add_argument("--socket", "-s", default=None, help="IPC socket path (default: discover)")
    parser.add_argument("--timeout", type=float, default=5.0, help="Reply timeout in seconds")
    parser.add_argument(
        "--monitor", "-m", nargs="+", metavar="EVENT", choices=CHANNELS,
        help="Subscribe to events and print them until shutdown",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser


async def monitor(i3, names: list[str], console: Console):
    """Print subscribed events until the server shuts down or hangs up."""
    done = asyncio.Event()

    def show(event):
        console.print(f"[bold cyan]{event.name}[/] [dim](code {event.code})[/]")
        console.print_json(data=event.body)
        if event.name == "shutdown":
            done.set()

    for name in names:
        i3.on(name, show)
    await i3.subscribe(*[n for n in names if n != "unknown"])

    waiters = [asyncio.create_task(done.wait()), asyncio.create_task(i3.wait_closed())]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in waiters:
            task.cancel()


async def run(args, console: Console) -> int:
    async with await connect(socket_path=args.socket, timeout=args.timeout) as i3:
        if args.monitor:
            await monitor(i3, args.monitor, console)
            return 0

        payload = " ".join(args.payload)
        if args.type == MessageType.RUN_COMMAND:
            body = await i3.send_command(payload)
        else:
            body = await i3.query(args.type, payload)
        console.print_json(data=body)
        return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    console = Console()
    try:
        return asyncio.run(run(args, console))
    except ApplicationFailure as e:
        console.print(f"[red][-][/] {e.error}")
        console.print_json(data=e.body)
        return 1
    except (IpcError, OSError) as e:
        console.print(f"[red][-][/] {e}")
        return 2
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
