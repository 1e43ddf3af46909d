"""
Chat Session for the Terminal Chat Client

This module implements the communication logic on top of the connection
handler: the login handshake, the bearer-token lifecycle, the requests the
UI can make, and the handling of every server message type.

Architecture:
    - Each server message type has its own response listener which filters
      envelopes by their "type" key and decodes them into typed schemas
    - The token travels from the login response listener to whoever awaits
      it through a single-slot TokenHandoff
    - Reconnects follow an explicit state machine and are serialized so
      that only one reconnect sequence is ever in flight

State machine:
    DISCONNECTED --login()--> AUTHENTICATING --ok response--> READY
    any state --disconnect--> CONNECTING --connect()+login()--> AUTHENTICATING

Usage:
    session = ChatSession(connection, nickname="alice")
    session.register_listeners()
    listen_task = asyncio.create_task(connection.listen())
    await session.login_and_wait_for_token()
    await session.post_message("hello")
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .connection import ConnectionHandler
from .events import invoke_listener
from .handoff import TokenHandoff
from .prompts import ask_nickname
from .protocol import MessageType, Status
from .schemas import (
    ChatMessage,
    LoginRequest,
    LoginResponse,
    MessageDecodeError,
    OnlineUsersRequest,
    OnlineUsersResponse,
    PostMessageRequest,
    PostMessageResponse,
)

logger = logging.getLogger(__name__)

# Seconds to wait after a disconnect before reconnecting
RECONNECT_DELAY = 5.0

NicknamePrompt = Callable[[], Union[str, Awaitable[str]]]


class SessionState(Enum):
    """Lifecycle state of the chat session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    READY = "ready"


class ChatSession:
    """
    Session protocol handler. Handles responses and sends requests.

    The UI collaborator is attached once it exists; until then chat lines
    are written to the log and online user lists are discarded. It must
    provide print_to_chat_box(), an online_users queue and ask_nickname().

    Attributes:
        connection: Connection handler used for all traffic
        nickname: Nickname to log in with (changes on name collisions)
        token: Bearer token, empty unless the session is READY
        state: Current SessionState
        ui: Attached UI collaborator, or None
    """

    def __init__(
        self,
        connection: ConnectionHandler,
        nickname: str,
        nickname_prompt: Optional[NicknamePrompt] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        reconnect_delay: float = RECONNECT_DELAY,
    ):
        """
        Initialize the chat session.

        Args:
            connection: Connection handler used for all traffic
            nickname: Initial nickname
            nickname_prompt: Asks the user for a new nickname after a name
                collision (stdin prompt in a worker thread by default)
            sleep: Optional replacement for asyncio.sleep (fake clock)
            reconnect_delay: Seconds to wait before reconnecting
        """
        self.connection = connection
        self.nickname = nickname
        self.token = ""
        self.state = SessionState.DISCONNECTED
        self.ui: Any = None
        self.reconnect_delay = reconnect_delay
        self._nickname_prompt = nickname_prompt or _ask_nickname_on_stdin
        self._sleep = sleep or asyncio.sleep
        self._handoff = TokenHandoff()
        self._reconnect_lock = asyncio.Lock()
        self._token_waiter: Optional[asyncio.Task] = None

    def attach_ui(self, ui: Any) -> None:
        """
        Attach the UI collaborator.

        From now on chat lines and online user lists are forwarded to it,
        and name collisions are resolved through its nickname dialog.
        """
        self.ui = ui
        self._nickname_prompt = ui.ask_nickname

    def register_listeners(self) -> None:
        """
        Register every listener with the connection handler.

        Must be called once, before the receive loop starts.
        """
        self.connection.add_on_disconnect_listener(self.handle_disconnect)
        self.connection.add_on_response_listener(self.handle_login_response)
        self.connection.add_on_response_listener(self.handle_chat_message)
        self.connection.add_on_response_listener(
            self.handle_post_message_response
        )
        self.connection.add_on_response_listener(self.handle_online_users)

    async def login(self) -> None:
        """
        Send a login request with the current nickname.

        Does not wait for the response.
        """
        self.state = SessionState.AUTHENTICATING
        try:
            await self.connection.send(LoginRequest(self.nickname).to_dict())
        except ConnectionError as e:
            logger.error("Send login request: %s", e)
            return
        logger.debug("Login request sent as %s", self.nickname)

    async def login_and_wait_for_token(self) -> str:
        """
        Send a login request and block until the token is received back.

        Returns:
            The bearer token
        """
        await self.login()
        token = await self._handoff.wait()
        self._accept_token(token)
        return token

    async def post_message(self, msg: str) -> None:
        """
        Send a post message request to the server.

        Fire-and-forget: the response only ever produces a log line.
        """
        if not self._ready("post message"):
            return
        try:
            await self.connection.send(
                PostMessageRequest(token=self.token, msg=msg).to_dict()
            )
        except ConnectionError as e:
            logger.error("Send post message request: %s", e)

    async def request_online_users(self) -> None:
        """Send an online users list request to the server."""
        if not self._ready("request online users"):
            return
        try:
            await self.connection.send(
                OnlineUsersRequest(token=self.token).to_dict()
            )
        except ConnectionError as e:
            logger.error("Send online users request: %s", e)

    async def handle_login_response(self, resp: Dict[str, Any]) -> None:
        """Handle the server's answer to a login request."""
        if resp.get("type") != MessageType.LOGIN_RESPONSE:
            return
        try:
            r = LoginResponse.from_dict(resp)
        except MessageDecodeError as e:
            logger.error("Decode login status response: %s", e)
            return

        if r.status == Status.OK:
            if not r.token:
                logger.error("Login response carries no token")
                return
            logger.info("Login successful")
            self._handoff.put(r.token)
        elif r.status == Status.NAME_TAKEN:
            logger.warning("Name is already taken")
            rejected = self.nickname
            self.nickname = await self._ask_new_nickname(rejected)
            await self.login()
        else:
            # No retry: the session stays without a token.
            logger.error("Login failed, status: %s", r.status.name)

    def handle_chat_message(self, resp: Dict[str, Any]) -> None:
        """Handle a chat line pushed by the server."""
        if resp.get("type") != MessageType.CHAT_MESSAGE:
            return
        try:
            r = ChatMessage.from_dict(resp)
        except MessageDecodeError as e:
            logger.error("Decode chat message to client: %s", e)
            return

        if self.ui is None:
            logger.info(
                "%s: %s", "SYSTEM" if r.is_system else r.nickname, r.msg
            )
            return
        self.ui.print_to_chat_box(r.nickname, r.msg, r.is_system)

    def handle_post_message_response(self, resp: Dict[str, Any]) -> None:
        """Handle the server's answer to a post message request."""
        if resp.get("type") != MessageType.POST_MESSAGE_RESPONSE:
            return
        try:
            r = PostMessageResponse.from_dict(resp)
        except MessageDecodeError as e:
            logger.error("Decode post message status response: %s", e)
            return

        if r.status != Status.OK:
            logger.error("Post message failed, status: %s", r.status.name)

    def handle_online_users(self, resp: Dict[str, Any]) -> None:
        """Handle the online users list sent by the server."""
        if resp.get("type") != MessageType.ONLINE_USERS_RESPONSE:
            return
        try:
            r = OnlineUsersResponse.from_dict(resp)
        except MessageDecodeError as e:
            logger.error("Decode online users response: %s", e)
            return

        if r.status != Status.OK:
            logger.error("Get online users failed, status: %s", r.status.name)
            return
        self._push_online_users(r.users or [])

    async def handle_disconnect(self, error: BaseException) -> None:
        """
        Recover from a lost connection.

        Clears the online users display, waits, reconnects (retrying
        indefinitely), logs in again and re-arms the token hand-off.

        The receive loop runs disconnect listeners inline, so it never
        overlaps two reconnects. The lock guards direct or concurrent
        callers: a disconnect reported while a reconnect is already
        running is ignored.
        """
        if self._reconnect_lock.locked():
            logger.debug("Reconnect already in progress, ignoring: %s", error)
            return

        async with self._reconnect_lock:
            logger.error(
                "Lost connection to server: %s. Retrying in %g seconds.",
                error,
                self.reconnect_delay,
            )
            self.state = SessionState.CONNECTING
            self.token = ""
            if self.ui is not None:
                self._push_online_users([])

            await self._sleep(self.reconnect_delay)
            await self.connection.connect()

            self._handoff.rearm()
            await self.login()
            self._start_token_waiter()

    def _accept_token(self, token: str) -> None:
        self.token = token
        self.state = SessionState.READY

    def _start_token_waiter(self) -> None:
        if self._token_waiter is not None and not self._token_waiter.done():
            return
        self._token_waiter = asyncio.create_task(self._wait_for_token())

    async def _wait_for_token(self) -> None:
        self._accept_token(await self._handoff.wait())

    async def _ask_new_nickname(self, rejected: str) -> str:
        while True:
            nickname = await invoke_listener(self._nickname_prompt)
            if nickname != rejected:
                return nickname
            logger.warning("Nickname %s is already taken", rejected)

    def _push_online_users(self, users: list) -> None:
        if self.ui is None:
            logger.debug("No UI attached, dropping online users list")
            return
        self.ui.online_users.put_nowait(list(users))

    def _ready(self, action: str) -> bool:
        if self.state == SessionState.READY and self.token:
            return True
        logger.warning("Not logged in, cannot %s", action)
        return False


async def _ask_nickname_on_stdin() -> str:
    return await asyncio.to_thread(ask_nickname)
