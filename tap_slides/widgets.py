"""
Small input widgets for the terminal views.
"""
from typing import List

from rich.style import Style
from rich.text import Text

from .styles import COLOR_PRIMARY, MUTED_STYLE

CURSOR_STYLE = Style(reverse=True)

DOT_FRAMES = ["⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷"]


class TextArea:
    """
    Single-buffer text input with a cursor.

    Keys are the names produced by the terminal reader. Printable
    single-character keys are inserted; editing keys move or delete.
    """

    def __init__(self, placeholder: str = "", char_limit: int = 2000, width: int = 60):
        self.placeholder = placeholder
        self.char_limit = char_limit
        self.width = width
        self.value = ""
        self.cursor = 0
        self.focused = False

    def set_value(self, value: str) -> None:
        self.value = value[:self.char_limit]
        self.cursor = len(self.value)

    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False

    def handle_key(self, key: str) -> bool:
        """
        Apply a key press.

        Returns:
            True if the key was consumed
        """
        if not self.focused:
            return False

        if key == "backspace":
            if self.cursor > 0:
                self.value = self.value[:self.cursor - 1] + self.value[self.cursor:]
                self.cursor -= 1
        elif key == "delete":
            self.value = self.value[:self.cursor] + self.value[self.cursor + 1:]
        elif key == "left":
            self.cursor = max(0, self.cursor - 1)
        elif key == "right":
            self.cursor = min(len(self.value), self.cursor + 1)
        elif key in ("home", "ctrl+a"):
            self.cursor = 0
        elif key in ("end", "ctrl+e"):
            self.cursor = len(self.value)
        elif key == "ctrl+u":
            self.value = self.value[self.cursor:]
            self.cursor = 0
        elif key == "ctrl+k":
            self.value = self.value[:self.cursor]
        elif len(key) == 1 and key.isprintable():
            if len(self.value) >= self.char_limit:
                return True
            self.value = self.value[:self.cursor] + key + self.value[self.cursor:]
            self.cursor += 1
        else:
            return False
        return True

    def _wrapped(self) -> List[str]:
        if not self.value:
            return [""]
        return [self.value[i:i + self.width] for i in range(0, len(self.value), self.width)]

    def render(self) -> Text:
        if not self.value and not self.focused:
            return Text(self.placeholder, style=MUTED_STYLE)

        text = Text()
        if not self.value:
            text.append(" ", style=CURSOR_STYLE)
            text.append(self.placeholder, style=MUTED_STYLE)
            return text

        offset = 0
        for row, line in enumerate(self._wrapped()):
            if row:
                text.append("\n")
            for col, ch in enumerate(line):
                at_cursor = self.focused and offset + col == self.cursor
                text.append(ch, style=CURSOR_STYLE if at_cursor else None)
            offset += len(line)
        if self.focused and self.cursor == len(self.value):
            text.append(" ", style=CURSOR_STYLE)
        return text


class Spinner:
    """Frame-based progress indicator advanced by spinner ticks."""

    def __init__(self, frames: List[str] = None):
        self.frames = frames or DOT_FRAMES
        self.frame = 0

    def tick(self) -> None:
        self.frame = (self.frame + 1) % len(self.frames)

    def render(self) -> Text:
        return Text(self.frames[self.frame], style=Style(color=COLOR_PRIMARY))
