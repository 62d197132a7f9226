"""Console front end for driving a field set from the keyboard."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Awaitable, Callable, Sequence

from .config import FieldSetConfig
from .connection import FieldSetConnection
from .errors import TMClientError
from .protobuf_util import Notice, notice_to_dict

_LOGGER = logging.getLogger(__name__)

PROMPT = "Enter command or h for help: "

HELP_TEXT = """Commands list:
    s - start match
    n - queue next match
    p - queue previous match
    e - end match early
    a - abort match
    r - reset timer
    c - reconnect
    q - quit"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tm-fieldset",
        description="Control a Tournament Manager field set from the console.",
    )
    parser.add_argument(
        "--address",
        help="TM server address, optionally host:port (env TM_ADDRESS)",
    )
    parser.add_argument(
        "--password",
        help="TM admin password (env TM_PASSWORD)",
    )
    parser.add_argument(
        "--field-set",
        type=int,
        help="field set ID, starting at 1 (env TM_FIELD_SET, default 1)",
    )
    parser.add_argument(
        "--handshake-timeout",
        type=float,
        help="seconds to wait for the server after the handshake "
        "(env TM_HANDSHAKE_TIMEOUT, default 10)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def _config_environ(args: argparse.Namespace) -> dict[str, str]:
    """Overlay command line values on the ``TM_*`` environment."""
    environ = dict(os.environ)
    overrides = {
        "TM_ADDRESS": args.address,
        "TM_PASSWORD": args.password,
        "TM_FIELD_SET": args.field_set,
        "TM_HANDSHAKE_TIMEOUT": args.handshake_timeout,
    }
    environ.update(
        {name: str(value) for name, value in overrides.items() if value is not None}
    )
    return environ


def _print_notice(notice: Notice) -> None:
    print(notice_to_dict(notice.message))


def _commands(
    tm: FieldSetConnection,
) -> dict[str, Callable[[], Awaitable[None]]]:
    return {
        "s": tm.start_match,
        "n": tm.queue_next_match,
        "p": tm.queue_previous_match,
        "e": tm.end_early,
        "a": tm.abort_match,
        "r": tm.reset_timer,
        "c": tm.connect,
    }


async def run_console(
    tm: FieldSetConnection,
    read_line: Callable[[str], str] = input,
) -> None:
    """Read operator commands until quit or end of input."""
    loop = asyncio.get_running_loop()
    commands = _commands(tm)

    while True:
        try:
            cmd = (await loop.run_in_executor(None, read_line, PROMPT)).strip()
        except EOFError:
            break

        if cmd == "q":
            break

        action = commands.get(cmd)
        if action is None:
            if cmd != "h":
                print("Command not recognized.")
            print(HELP_TEXT)
            continue

        try:
            await action()
        except NotImplementedError:
            print("Not yet supported")
        except TMClientError as err:
            print(f"Command failed: {err}")


async def _main_async(config: FieldSetConfig) -> int:
    tm = FieldSetConnection(config)
    tm.on_notice(_print_notice)
    try:
        await tm.connect()
    except TMClientError as err:
        _LOGGER.error(
            "Could not connect to %s: %s (press c to retry)", config.address, err
        )

    try:
        await run_console(tm)
    finally:
        await tm.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Console entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    environ = _config_environ(args)
    if not environ.get("TM_ADDRESS") or not environ.get("TM_PASSWORD"):
        parser.error("--address and --password are required")

    try:
        config = FieldSetConfig.from_env(environ)
    except TMClientError as err:
        print(err, file=sys.stderr)
        return 2

    return asyncio.run(_main_async(config))
