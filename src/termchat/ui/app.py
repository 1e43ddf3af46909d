"""
Chat Application UI

Terminal user interface for the chat client, built using the Textual
framework. It shows the chat box, the input field and a toggleable list
of online users, and it becomes the sink for log records while running.

Keys:
    Enter   send the input field contents
    Up/Down scroll the chat box
    Tab     focus the next widget (arrows scroll the focused box)
    F2      open/close the online users box
    Ctrl+C  quit
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Input, Label, RichLog, Static

from ..events import invoke_listener
from ..prompts import MAX_NICKNAME_LENGTH, validate_nickname

logger = logging.getLogger(__name__)

# Longest message the input field accepts
MAX_MESSAGE_LENGTH = 2000

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "blue",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}


class ChatLogHandler(logging.Handler):
    """Logging handler writing records into the chat box."""

    def __init__(self, app: "ChatApp", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.app = app
        self.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.app.write_log_line(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)


class NicknameScreen(ModalScreen[str]):
    """Modal dialog asking for a new nickname after a name collision."""

    DEFAULT_CSS = """
    NicknameScreen {
        align: center middle;
    }

    #nickname-form {
        width: 50;
        height: auto;
        padding: 1;
        border: solid $warning;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="nickname-form"):
            yield Label("Name is already taken. Enter another nickname:")
            yield Input(
                placeholder="Enter your nickname...",
                id="nickname-input",
                max_length=MAX_NICKNAME_LENGTH,
            )
            yield Static("", id="nickname-status")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Dismiss with the nickname once it is valid."""
        event.stop()
        nickname = event.value.strip()
        if not validate_nickname(nickname):
            self.query_one("#nickname-status", Static).update(
                f"[red]Nickname must be 1-{MAX_NICKNAME_LENGTH} symbols[/]"
            )
            return
        self.dismiss(nickname)


class ChatApp(App):
    """
    Main chat application.

    Attributes:
        online_users: Queue of nickname lists; the latest one is rendered
            in the online users box
        log_handler: Handler that takes over the root logger while mounted
    """

    CSS = """
    Screen {
        layout: vertical;
    }

    #chat-container {
        height: 1fr;
    }

    #chat-box {
        width: 1fr;
        border: solid $primary;
    }

    #online-box {
        width: 22;
        border: solid $primary;
        padding: 0 1;
    }

    #input-field {
        height: 3;
    }

    .hidden {
        display: none;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=True, priority=True),
        Binding("f2", "toggle_online_box", "Online users", show=True),
        Binding("up", "scroll_chat(-1)", "Scroll up", show=False),
        Binding("down", "scroll_chat(1)", "Scroll down", show=False),
    ]

    def __init__(self) -> None:
        """Initialize the chat application."""
        super().__init__()
        self.online_users: "asyncio.Queue[List[str]]" = asyncio.Queue()
        self.log_handler = ChatLogHandler(self)
        self._on_msg_send: List[Callable[[str], Any]] = []
        self._on_online_box_open: List[Callable[[], Any]] = []
        self._pending_lines: List[Text] = []
        self._saved_handlers: List[logging.Handler] = []
        self._ui_thread: Optional[int] = None
        self._chat_box: Optional[RichLog] = None
        self._online_box: Optional[Static] = None

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        with Horizontal(id="chat-container"):
            yield RichLog(id="chat-box", wrap=True, auto_scroll=True)
            yield Static("", id="online-box", classes="hidden")
        yield Input(
            placeholder="Type a message...",
            id="input-field",
            max_length=MAX_MESSAGE_LENGTH,
        )
        yield Footer()

    def on_mount(self) -> None:
        """Take over logging and start the online users updater."""
        self._ui_thread = threading.get_ident()
        self._chat_box = self.query_one("#chat-box", RichLog)
        self._chat_box.border_title = "Chat"
        self._online_box = self.query_one("#online-box", Static)
        self._online_box.border_title = "0 online"
        self.query_one("#input-field", Input).focus()

        root = logging.getLogger()
        self._saved_handlers = list(root.handlers)
        for handler in self._saved_handlers:
            root.removeHandler(handler)
        root.addHandler(self.log_handler)

        for line in self._pending_lines:
            self._chat_box.write(line)
        self._pending_lines.clear()

        self.run_worker(self._update_online_box(), exclusive=True)

    def on_unmount(self) -> None:
        """Give the log sink back to the original handlers."""
        self._ui_thread = None
        root = logging.getLogger()
        root.removeHandler(self.log_handler)
        for handler in self._saved_handlers:
            root.addHandler(handler)
        self._saved_handlers = []

    def add_on_message_send_listener(self, listener: Callable[[str], Any]) -> None:
        """Register a listener to run when a message from the input field is sent."""
        self._on_msg_send.append(listener)

    def add_on_online_box_open_listener(self, listener: Callable[[], Any]) -> None:
        """Register a listener to run when the online users box is opened."""
        self._on_online_box_open.append(listener)

    def print_to_chat_box(self, nickname: str, msg: str, is_system: bool) -> None:
        """
        Print a message to the chat box, prefixed with the current time.

        Args:
            nickname: Author of the message
            msg: The message text
            is_system: Replace the nickname with a SYSTEM tag
        """
        line = Text.assemble(*self._chat_line_parts(nickname, msg, is_system))
        self._write(line)

    def write_log_line(self, level: int, message: str) -> None:
        """Print a formatted log record to the chat box."""
        style = LEVEL_STYLES.get(level, "")
        line = Text.assemble(
            (datetime.now().strftime("%H:%M:%S"), "green"), " ", (message, style)
        )
        if self._ui_thread is not None and threading.get_ident() != self._ui_thread:
            self.call_from_thread(self._write, line)
            return
        self._write(line)

    async def ask_nickname(self) -> str:
        """
        Show the nickname dialog and wait for a valid answer.

        Safe to await from tasks running outside the app, such as the
        receive loop: the dialog is pushed from the app's own message loop.
        """
        answer: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self.call_later(self._show_nickname_screen, answer)
        return await answer

    def _show_nickname_screen(self, answer: "asyncio.Future[str]") -> None:
        def resolve(nickname: Optional[str]) -> None:
            if not answer.done():
                answer.set_result(nickname or "")

        self.push_screen(NicknameScreen(), callback=resolve)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Send the input field contents to the message send listeners."""
        if event.input.id != "input-field":
            return
        msg = event.value.strip()
        event.input.clear()
        if not msg:
            return
        for listener in self._on_msg_send:
            await invoke_listener(listener, msg)

    async def action_toggle_online_box(self) -> None:
        """Open the online users box if it's closed and close it if it's open."""
        online_box = self._online_box
        if online_box is None:
            return
        if not online_box.has_class("hidden"):
            online_box.add_class("hidden")
            return

        online_box.remove_class("hidden")
        for listener in self._on_online_box_open:
            await invoke_listener(listener)

    def action_scroll_chat(self, lines: int) -> None:
        """Scroll the chat box history by the given number of lines."""
        if self._chat_box is None:
            return
        self._chat_box.scroll_relative(y=lines, animate=False)

    async def _update_online_box(self) -> None:
        """Redraw the online users box whenever a new list arrives."""
        while True:
            users = sorted(await self.online_users.get())
            online_box = self._online_box
            if online_box is None:
                continue
            online_box.border_title = f"{len(users)} online"
            online_box.update(Text("\n".join(users)))

    def _write(self, line: Text) -> None:
        if self._ui_thread is None or self._chat_box is None:
            self._pending_lines.append(line)
            return
        self._chat_box.write(line)

    @staticmethod
    def _chat_line_parts(
        nickname: str, msg: str, is_system: bool
    ) -> List[Tuple[str, str]]:
        timestamp = datetime.now().strftime("%H:%M:%S")
        if is_system:
            author = ("SYSTEM", "cyan")
        else:
            author = (nickname, "yellow")
        return [(timestamp, "green"), (" ", ""), author, (" ", ""), (msg, "")]
