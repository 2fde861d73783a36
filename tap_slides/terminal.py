"""
Keyboard input for the full-screen session (POSIX terminals).

Bytes from stdin are decoded into the key names used by the reducers:
``"a"``, ``" "``, ``"enter"``, ``"esc"``, ``"up"``, ``"backspace"``,
``"ctrl+c"`` and so on.
"""
import logging
import os
import select
import sys
import termios
import threading
import tty
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ESCAPE_SEQUENCES = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[3~": "delete",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1bOH": "home",
    "\x1bOF": "end",
}

SPECIAL_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x1b": "esc",
}

# How long to wait for the rest of an escape sequence after ESC.
ESCAPE_TIMEOUT = 0.05
POLL_INTERVAL = 0.1


def decode_keys(chunk: str) -> List[str]:
    """
    Split one read from the terminal into key names.

    Args:
        chunk: Characters read in a single burst

    Returns:
        Key names in input order
    """
    keys = []
    i = 0
    while i < len(chunk):
        ch = chunk[i]
        if ch == "\x1b" and i + 1 < len(chunk):
            matched = False
            for length in (4, 3):
                seq = chunk[i:i + length]
                if seq in ESCAPE_SEQUENCES:
                    keys.append(ESCAPE_SEQUENCES[seq])
                    i += length
                    matched = True
                    break
            if matched:
                continue
            if chunk[i + 1] in "[O":
                # Unknown CSI sequence: drop it through its final byte.
                j = i + 2
                while j < len(chunk) and not ("@" <= chunk[j] <= "~"):
                    j += 1
                i = j + 1
                continue
            keys.append("esc")
            i += 1
            continue

        if ch in SPECIAL_KEYS:
            keys.append(SPECIAL_KEYS[ch])
        elif ch == "\x00":
            keys.append("ctrl+@")
        elif "\x01" <= ch <= "\x1a":
            keys.append("ctrl+" + chr(ord(ch) + ord("a") - 1))
        elif ch.isprintable():
            keys.append(ch)
        i += 1
    return keys


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


class KeyReader:
    """
    Background thread that reads stdin in cbreak mode and reports key names.

    Terminal settings are restored by stop(), also when the thread dies.
    """

    def __init__(self, on_key: Callable[[str], None], stream=None):
        self.on_key = on_key
        self.stream = stream or sys.stdin
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._old_settings = None

    def start(self) -> None:
        fd = self.stream.fileno()
        self._old_settings = termios.tcgetattr(fd)
        # cbreak keeps output processing (OPOST) so rendered "\n" still returns the cursor.
        tty.setcbreak(fd)
        # ctrl+c arrives as a key rather than SIGINT.
        mode = termios.tcgetattr(fd)
        mode[tty.LFLAG] &= ~termios.ISIG
        termios.tcsetattr(fd, termios.TCSAFLUSH, mode)
        self._thread = threading.Thread(target=self._run, name="key-reader", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        self._restore()

    def _restore(self) -> None:
        if self._old_settings is None:
            return
        try:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._old_settings)
        except termios.error as e:
            logger.warning(f"Could not restore terminal settings: {e}")
        self._old_settings = None

    def _read_available(self, fd: int) -> str:
        data = os.read(fd, 1024)
        if data.endswith(b"\x1b"):
            ready, _, _ = select.select([fd], [], [], ESCAPE_TIMEOUT)
            if ready:
                data += os.read(fd, 1024)
        return data.decode("utf-8", errors="replace")

    def _run(self) -> None:
        fd = self.stream.fileno()
        while not self._stop.is_set():
            ready, _, _ = select.select([fd], [], [], POLL_INTERVAL)
            if not ready:
                continue
            try:
                chunk = self._read_available(fd)
            except OSError as e:
                logger.error(f"Keyboard input failed: {e}")
                return
            if not chunk:
                return
            for key in decode_keys(chunk):
                self.on_key(key)
