"""
Message loop driving a reducer-style model.

The model exposes ``init() -> commands``, ``update(msg) -> commands`` and
``view() -> renderable``. Every message goes through one mailbox and is
handled on the loop thread, one at a time, in arrival order. Commands run on a
worker pool and post their single result message back to the mailbox.
"""
import logging
import queue
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from rich.console import Console
from rich.live import Live

from .messages import Command, Commands, KeyMsg, Message, QuitMsg, WindowSizeMsg
from .terminal import KeyReader, is_interactive

logger = logging.getLogger(__name__)


class Program:
    """
    Runs a model until it produces a QuitMsg.

    Args:
        model: Object with init/update/view
        console: rich Console to render to
        alt_screen: Render in the terminal's alternate screen
        read_keys: Start the raw key reader; defaults to whether stdin is a TTY
        max_workers: Size of the command worker pool
    """

    def __init__(
        self,
        model,
        console: Optional[Console] = None,
        alt_screen: bool = True,
        read_keys: Optional[bool] = None,
        max_workers: int = 8,
    ):
        self.model = model
        self.console = console or Console()
        self.alt_screen = alt_screen
        self.read_keys = is_interactive() if read_keys is None else read_keys
        self.max_workers = max_workers
        self._mailbox: "queue.Queue[Message]" = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None

    def send(self, msg: Message) -> None:
        """Post a message from any thread."""
        self._mailbox.put(msg)

    def _execute(self, cmd: Command) -> None:
        try:
            msg = cmd()
        except Exception:
            logger.exception("Command failed")
            return
        if msg is not None:
            self.send(msg)

    def _dispatch(self, cmds: Commands) -> None:
        for cmd in cmds or []:
            if cmd is None:
                continue
            self._executor.submit(self._execute, cmd)

    def _on_resize(self, signum, frame) -> None:
        width, height = self.console.size
        self.send(WindowSizeMsg(width=width, height=height))

    def _install_resize_handler(self):
        if not hasattr(signal, "SIGWINCH") or threading.current_thread() is not threading.main_thread():
            return None
        return signal.signal(signal.SIGWINCH, self._on_resize)

    def run(self) -> None:
        """Run the loop on the calling thread until QuitMsg."""
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tap-cmd")
        key_reader = None
        previous_handler = self._install_resize_handler()

        try:
            if self.read_keys:
                key_reader = KeyReader(lambda key: self.send(KeyMsg(key)))
                key_reader.start()

            width, height = self.console.size
            self.send(WindowSizeMsg(width=width, height=height))

            with Live(
                self.model.view(),
                console=self.console,
                screen=self.alt_screen,
                auto_refresh=False,
                redirect_stdout=False,
                redirect_stderr=False,
            ) as live:
                self._dispatch(self.model.init())

                while True:
                    msg = self._mailbox.get()
                    if isinstance(msg, QuitMsg):
                        logger.debug("Quit received, stopping loop")
                        break
                    cmds = self.model.update(msg)
                    live.update(self.model.view(), refresh=True)
                    self._dispatch(cmds)
        finally:
            if key_reader is not None:
                key_reader.stop()
            if previous_handler is not None:
                signal.signal(signal.SIGWINCH, previous_handler)
            self._executor.shutdown(wait=False, cancel_futures=True)
