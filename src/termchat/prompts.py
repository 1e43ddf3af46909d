"""
Standard Input Prompts

Interactive questions asked on the terminal before the chat UI starts:
server address, TLS mode and nickname. Every prompt repeats until the
answer is valid.
"""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

MAX_NICKNAME_LENGTH = 20


def ask_server_address() -> str:
    """Return the address of the server to connect to."""
    return ask(
        "Enter server address in format of 'host:port': ",
        lambda answer: answer == "",
    )


def ask_tls_mode() -> bool:
    """Return True if the connection to the server should use TLS."""
    answer = ask(
        "Connect to server using TLS protocol? (y/n): ",
        lambda answer: answer.lower() not in ("y", "n"),
    )
    return answer.lower() == "y"


def ask_nickname() -> str:
    """Return the nickname to log in with."""
    return ask("Enter your nickname: ", _invalid_nickname)


def ask(
    prompt: str, is_invalid: Callable[[str], bool], trim: bool = True
) -> str:
    """
    Read an answer from standard input, asking again while it is invalid.

    Args:
        prompt: Text shown before the cursor
        is_invalid: Returns True for answers that must be asked again
        trim: Strip surrounding whitespace from the answer

    Returns:
        The first valid answer

    Raises:
        EOFError: If standard input is closed
    """
    while True:
        answer = input(prompt)
        if trim:
            answer = answer.strip()
        if not is_invalid(answer):
            return answer


def _invalid_nickname(nickname: str) -> bool:
    if nickname == "":
        return True
    if len(nickname) > MAX_NICKNAME_LENGTH:
        logger.warning(
            "Nicknames with length > %s symbols are not allowed",
            MAX_NICKNAME_LENGTH,
        )
        return True
    return False


def validate_nickname(nickname: str) -> bool:
    """Return True if the nickname is acceptable (non-empty, short enough)."""
    return not _invalid_nickname(nickname.strip())
