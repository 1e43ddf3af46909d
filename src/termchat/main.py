#!/usr/bin/env python3
"""
Terminal Chat Client

Entry point of the chat client. Reads the config, asks for whatever is
missing, connects and logs in to the server, then hands the terminal over
to the Textual user interface.

Usage:
    chat-client
    chat-client --logLevel 5
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import Config, ConfigError, read_config, write_config
from .connection import ConnectionHandler
from .prompts import ask_nickname, ask_server_address, ask_tls_mode
from .protocol import ProtocolError
from .session import ChatSession
from .ui import ChatApp

VERSION = "v0.1.0"

# Log levels 0-6: panic, fatal, error, warn, info, debug, trace
LOG_LEVELS = {
    0: logging.CRITICAL,
    1: logging.CRITICAL,
    2: logging.ERROR,
    3: logging.WARNING,
    4: logging.INFO,
    5: logging.DEBUG,
    6: logging.DEBUG,
}
DEFAULT_LOG_LEVEL = 4

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="chat-client",
        description="Terminal client for the chat server",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=VERSION,
        help="Show version and exit",
    )
    parser.add_argument(
        "-l",
        "--logLevel",
        dest="log_level",
        type=int,
        choices=sorted(LOG_LEVELS),
        default=DEFAULT_LOG_LEVEL,
        help="Log level from 0 (panic) to 6 (trace) (default: %(default)s)",
    )
    return parser


def setup_logging(level: int) -> None:
    """Configure logging to stderr until the UI takes over the sink."""
    logging.basicConfig(
        level=LOG_LEVELS[level],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def load_config() -> Config:
    """Read the config file and ask for any missing connection settings."""
    try:
        config = read_config()
    except ConfigError as e:
        logger.debug("%s", e)
        config = Config()

    if not config.server_address:
        config.server_address = ask_server_address()
    if config.tls_mode is None:
        config.tls_mode = ask_tls_mode()
    return config


def save_config(config: Config) -> None:
    try:
        write_config(config)
    except ConfigError as e:
        logger.error("%s", e)


async def run_client(config: Config) -> None:
    """
    Run the client until the UI quits.

    Raises:
        ProtocolError: If the receive loop hits a malformed frame
    """
    connection = ConnectionHandler(config.server_address, tls=bool(config.tls_mode))
    await connection.connect()

    if not config.nickname:
        config.nickname = await asyncio.to_thread(ask_nickname)

    session = ChatSession(connection, nickname=config.nickname)
    session.register_listeners()
    receive_task = asyncio.create_task(connection.listen())

    try:
        login_task = asyncio.create_task(session.login_and_wait_for_token())
        await asyncio.wait(
            {login_task, receive_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if receive_task.done():
            login_task.cancel()
            receive_task.result()
            return

        app = ChatApp()
        session.attach_ui(app)
        app.add_on_message_send_listener(session.post_message)
        app.add_on_online_box_open_listener(session.request_online_users)

        config.nickname = session.nickname
        save_config(config)

        ui_task = asyncio.create_task(app.run_async())
        await asyncio.wait(
            {ui_task, receive_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if receive_task.done():
            app.exit()
            await ui_task
            receive_task.result()
    finally:
        receive_task.cancel()
        await connection.close()
        config.nickname = session.nickname
        save_config(config)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the chat client."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config()
        asyncio.run(run_client(config))
    except ProtocolError as e:
        logger.critical("Read from connection: %s", e)
        sys.exit(1)
    except EOFError:
        logger.critical("Standard input closed")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
