"""
Tests for the Chat Session

Tests for the login handshake, the token lifecycle, request sending,
incoming message handling and the reconnect state machine.
"""

import asyncio
import json
import logging

import pytest

from termchat import ChatSession, ConnectionHandler, ProtocolError, SessionState
from termchat.events import EventDispatcher


class FakeConnection:
    """Connection stand-in recording every send and connect."""

    def __init__(self, events=None):
        self.dispatcher = EventDispatcher()
        self.events = events if events is not None else []
        self.sent = []
        self.connect_calls = 0

    def add_on_response_listener(self, listener):
        self.dispatcher.add_response_listener(listener)

    def add_on_disconnect_listener(self, listener):
        self.dispatcher.add_disconnect_listener(listener)

    async def send(self, envelope):
        self.sent.append(envelope)
        self.events.append(("send", envelope["type"]))

    async def connect(self):
        self.connect_calls += 1
        self.events.append(("connect",))


class RecordingQueue(asyncio.Queue):
    """Queue that also logs every list pushed into it."""

    def __init__(self, events):
        super().__init__()
        self.events = events

    def put_nowait(self, item):
        self.events.append(("online_users", list(item)))
        super().put_nowait(item)


class FakeUI:
    """UI stand-in recording printed lines and online user lists."""

    def __init__(self, events=None, nicknames=None):
        self.online_users = RecordingQueue(events if events is not None else [])
        self.printed = []
        self.nicknames = list(nicknames or [])

    def print_to_chat_box(self, nickname, msg, is_system):
        self.printed.append((nickname, msg, is_system))

    async def ask_nickname(self):
        return self.nicknames.pop(0)


class FakeClock:
    """Records sleeps and yields to the event loop once."""

    def __init__(self, events=None):
        self.sleeps = []
        self.events = events if events is not None else []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.events.append(("sleep", seconds))
        await asyncio.sleep(0)


def make_session(nicknames=None, events=None):
    events = events if events is not None else []
    connection = FakeConnection(events)
    clock = FakeClock(events)
    prompts = list(nicknames or [])
    session = ChatSession(
        connection,
        nickname="alice",
        nickname_prompt=lambda: prompts.pop(0),
        sleep=clock.sleep,
    )
    session.register_listeners()
    return session, connection, clock


async def ready_session(**kwargs):
    session, connection, clock = make_session(**kwargs)
    waiter = asyncio.create_task(session.login_and_wait_for_token())
    await asyncio.sleep(0)
    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "abc"}
    )
    await waiter
    connection.sent.clear()
    return session, connection, clock


def test_session_initial_state():
    session, _, _ = make_session()
    assert session.nickname == "alice"
    assert session.token == ""
    assert session.state == SessionState.DISCONNECTED
    assert session.ui is None


def test_register_listeners():
    session, connection, _ = make_session()
    assert connection.dispatcher.response_listener_count == 4
    assert connection.dispatcher.disconnect_listener_count == 1


@pytest.mark.asyncio
async def test_login_sends_request():
    session, connection, _ = make_session()

    await session.login()

    assert connection.sent == [{"type": 1, "nickname": "alice"}]
    assert session.state == SessionState.AUTHENTICATING


@pytest.mark.asyncio
async def test_login_and_wait_for_token():
    session, connection, _ = make_session()
    waiter = asyncio.create_task(session.login_and_wait_for_token())
    await asyncio.sleep(0)
    assert not waiter.done()

    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "abc"}
    )

    assert await waiter == "abc"
    assert session.token == "abc"
    assert session.state == SessionState.READY


@pytest.mark.asyncio
async def test_login_send_failure_is_logged(caplog):
    session, connection, _ = make_session()

    async def broken_send(envelope):
        raise ConnectionError("Not connected to chat server")

    connection.send = broken_send
    with caplog.at_level(logging.ERROR):
        await session.login()

    assert "Send login request" in caplog.text


@pytest.mark.asyncio
async def test_name_taken_retries_with_new_nickname(caplog):
    session, connection, _ = make_session(nicknames=["bob"])
    await session.login()

    with caplog.at_level(logging.WARNING):
        await connection.dispatcher.dispatch_response({"type": 2, "status": 3})

    assert connection.sent == [
        {"type": 1, "nickname": "alice"},
        {"type": 1, "nickname": "bob"},
    ]
    assert session.nickname == "bob"
    assert session.state == SessionState.AUTHENTICATING
    assert "Name is already taken" in caplog.text


@pytest.mark.asyncio
async def test_name_taken_asks_again_for_same_nickname():
    session, connection, _ = make_session(nicknames=["alice", "carol"])
    await session.login()

    await connection.dispatcher.dispatch_response({"type": 2, "status": 3})

    assert [env["nickname"] for env in connection.sent] == ["alice", "carol"]


@pytest.mark.asyncio
async def test_each_name_rejection_sends_one_new_login():
    session, connection, _ = make_session(nicknames=["bob", "carol"])
    await session.login()

    await connection.dispatcher.dispatch_response({"type": 2, "status": 3})
    await connection.dispatcher.dispatch_response({"type": 2, "status": 3})

    assert [env["nickname"] for env in connection.sent] == [
        "alice",
        "bob",
        "carol",
    ]


@pytest.mark.asyncio
async def test_other_login_rejection_is_not_retried(caplog):
    session, connection, _ = make_session()
    await session.login()

    with caplog.at_level(logging.ERROR):
        await connection.dispatcher.dispatch_response({"type": 2, "status": 5})

    assert len(connection.sent) == 1
    assert session.token == ""
    assert session.state == SessionState.AUTHENTICATING
    assert "Login failed, status: NAME_TOO_LONG" in caplog.text


@pytest.mark.asyncio
async def test_ok_login_without_token_is_not_accepted(caplog):
    session, connection, _ = make_session()
    waiter = asyncio.create_task(session.login_and_wait_for_token())
    await asyncio.sleep(0)

    with caplog.at_level(logging.ERROR):
        await connection.dispatcher.dispatch_response({"type": 2, "status": 1})
        await connection.dispatcher.dispatch_response(
            {"type": 2, "status": 1, "token": ""}
        )
    await asyncio.sleep(0)

    assert not waiter.done()
    assert session.token == ""
    assert session.state == SessionState.AUTHENTICATING
    assert "Login response carries no token" in caplog.text

    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "abc"}
    )
    assert await waiter == "abc"
    assert session.state == SessionState.READY


@pytest.mark.asyncio
async def test_malformed_login_response_is_logged(caplog):
    session, connection, _ = make_session()

    with caplog.at_level(logging.ERROR):
        await connection.dispatcher.dispatch_response({"type": 2})

    assert "Decode login status response" in caplog.text
    assert connection.sent == []


@pytest.mark.asyncio
async def test_post_message_when_ready():
    session, connection, _ = await ready_session()

    await session.post_message("hi")

    assert connection.sent == [{"type": 3, "token": "abc", "msg": "hi"}]


@pytest.mark.asyncio
async def test_post_message_without_token_is_skipped(caplog):
    session, connection, _ = make_session()

    with caplog.at_level(logging.WARNING):
        await session.post_message("hi")

    assert connection.sent == []
    assert "Not logged in" in caplog.text


@pytest.mark.asyncio
async def test_request_online_users_when_ready():
    session, connection, _ = await ready_session()

    await session.request_online_users()

    assert connection.sent == [{"type": 6, "token": "abc"}]


@pytest.mark.asyncio
async def test_post_message_failure_is_logged(caplog):
    session, connection, _ = await ready_session()

    async def broken_send(envelope):
        raise ConnectionError("Write to chat server: closed")

    connection.send = broken_send
    with caplog.at_level(logging.ERROR):
        await session.post_message("hi")

    assert "Send post message request" in caplog.text


@pytest.mark.asyncio
async def test_chat_message_forwarded_to_ui():
    session, connection, _ = make_session()
    ui = FakeUI()
    session.attach_ui(ui)

    await connection.dispatcher.dispatch_response(
        {"type": 5, "nickname": "alice", "msg": "hi", "isSystem": False}
    )

    assert ui.printed == [("alice", "hi", False)]


@pytest.mark.asyncio
async def test_chat_message_without_ui_is_logged(caplog):
    session, connection, _ = make_session()

    with caplog.at_level(logging.INFO):
        await connection.dispatcher.dispatch_response(
            {"type": 5, "nickname": "", "msg": "bob joined", "isSystem": True}
        )

    assert "SYSTEM: bob joined" in caplog.text


@pytest.mark.asyncio
async def test_post_message_response_not_ok_is_logged(caplog):
    session, connection, _ = make_session()

    with caplog.at_level(logging.ERROR):
        await connection.dispatcher.dispatch_response({"type": 4, "status": 6})

    assert "Post message failed, status: MESSAGE_EMPTY" in caplog.text


@pytest.mark.asyncio
async def test_online_users_forwarded_to_ui():
    session, connection, _ = make_session()
    ui = FakeUI()
    session.attach_ui(ui)

    await connection.dispatcher.dispatch_response(
        {"type": 7, "status": 1, "users": ["bob", "alice"]}
    )

    assert ui.online_users.get_nowait() == ["bob", "alice"]


@pytest.mark.asyncio
async def test_online_users_error_status_not_forwarded(caplog):
    session, connection, _ = make_session()
    ui = FakeUI()
    session.attach_ui(ui)

    with caplog.at_level(logging.ERROR):
        await connection.dispatcher.dispatch_response(
            {"type": 7, "status": 3, "users": []}
        )

    assert ui.online_users.empty()
    assert "Get online users failed, status: NAME_TAKEN" in caplog.text


@pytest.mark.asyncio
async def test_name_taken_after_ui_attached_uses_ui_prompt():
    session, connection, _ = make_session(nicknames=["from-stdin"])
    session.attach_ui(FakeUI(nicknames=["from-ui"]))

    await connection.dispatcher.dispatch_response({"type": 2, "status": 3})

    assert connection.sent == [{"type": 1, "nickname": "from-ui"}]


@pytest.mark.asyncio
async def test_disconnect_clears_online_users_before_login():
    events = []
    session, connection, clock = await ready_session(events=events)
    session.attach_ui(FakeUI(events))
    events.clear()

    await connection.dispatcher.dispatch_disconnect(ConnectionResetError("reset"))

    assert events == [
        ("online_users", []),
        ("sleep", 5.0),
        ("connect",),
        ("send", 1),
    ]
    assert session.token == ""
    assert session.state == SessionState.AUTHENTICATING


@pytest.mark.asyncio
async def test_reconnect_receives_new_token():
    session, connection, clock = await ready_session()

    await connection.dispatcher.dispatch_disconnect(ConnectionResetError("reset"))
    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "xyz"}
    )
    await asyncio.sleep(0)

    assert session.token == "xyz"
    assert session.state == SessionState.READY
    assert clock.sleeps == [5.0]
    assert connection.connect_calls == 1


@pytest.mark.asyncio
async def test_overlapping_disconnects_reconnect_once():
    session, connection, clock = await ready_session()

    await asyncio.gather(
        session.handle_disconnect(ConnectionResetError("first")),
        session.handle_disconnect(ConnectionResetError("second")),
    )

    assert connection.connect_calls == 1
    assert clock.sleeps == [5.0]
    assert connection.sent == [{"type": 1, "nickname": "alice"}]

    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "xyz"}
    )
    await asyncio.sleep(0)
    assert session.token == "xyz"
    assert session.state == SessionState.READY


@pytest.mark.asyncio
async def test_disconnect_while_waiting_for_first_token():
    session, connection, _ = make_session()
    waiter = asyncio.create_task(session.login_and_wait_for_token())
    await asyncio.sleep(0)

    await session.handle_disconnect(ConnectionResetError("reset"))
    await connection.dispatcher.dispatch_response(
        {"type": 2, "status": 1, "token": "abc"}
    )

    assert await waiter == "abc"
    assert session.token == "abc"
    assert session.state == SessionState.READY


class MockWebSocket:
    """Mock WebSocket serving a fixed list of frames."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.sent_messages = []

    async def send(self, message):
        self.sent_messages.append(message)

    async def recv(self):
        return self.frames.pop(0)


@pytest.mark.asyncio
async def test_session_over_connection_handler():
    ws = MockWebSocket(
        [
            '{"type":2,"status":1,"token":"abc"}',
            '{"type":5,"nickname":"bob","msg":"hello","isSystem":false}',
            "garbage",
        ]
    )

    async def factory(url):
        return ws

    connection = ConnectionHandler("localhost:8080", websocket_factory=factory)
    await connection.connect()
    session = ChatSession(connection, nickname="alice")
    session.register_listeners()
    ui = FakeUI()
    session.attach_ui(ui)
    listen_task = asyncio.create_task(connection.listen())

    token = await session.login_and_wait_for_token()

    assert token == "abc"
    with pytest.raises(ProtocolError):
        await listen_task
    assert json.loads(ws.sent_messages[0]) == {"type": 1, "nickname": "alice"}
    assert ui.printed == [("bob", "hello", False)]
