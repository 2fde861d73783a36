"""
Messages delivered to the reducer mailbox, and the command type that produces them.

A command is a plain callable run off the reducer thread. It returns at most
one message, which the runtime posts back into the mailbox.
"""
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .models import DevEvent, GeneratedImage

DASHBOARD_TICK_INTERVAL = 1.0
SPINNER_TICK_INTERVAL = 0.1


class Message:
    """Base class for everything that goes through the mailbox."""


Command = Callable[[], Optional[Message]]
Commands = List[Command]


@dataclass
class KeyMsg(Message):
    """A key press, named like ``"a"``, ``"enter"``, ``"esc"``, ``"up"``, ``"ctrl+c"``."""
    key: str


@dataclass
class WindowSizeMsg(Message):
    width: int
    height: int


@dataclass
class DevEventMsg(Message):
    """An event forwarded from the external event queue."""
    event: DevEvent


@dataclass
class TickMsg(Message):
    """Periodic clock tick used to refresh the dashboard."""


@dataclass
class SpinnerTickMsg(Message):
    """
    Animation frame for the progress indicator while generating.

    ``generation`` identifies the generation attempt that armed the tick;
    ticks from an earlier attempt are dropped.
    """
    generation: int = 0


@dataclass
class ImageGenerateMsg(Message):
    """
    Completion of one generation call: either an image or an error.
    """
    image: Optional[GeneratedImage] = None
    error: Optional[Exception] = None


@dataclass
class QuitMsg(Message):
    """Stops the runtime loop."""


def quit_cmd() -> Message:
    return QuitMsg()


def tick_cmd(interval: float = DASHBOARD_TICK_INTERVAL) -> Command:
    """Command that sleeps *interval* seconds and reports a TickMsg."""
    def _tick() -> Message:
        time.sleep(interval)
        return TickMsg()
    return _tick


def spinner_tick_cmd(interval: float = SPINNER_TICK_INTERVAL, generation: int = 0) -> Command:
    def _tick() -> Message:
        time.sleep(interval)
        return SpinnerTickMsg(generation=generation)
    return _tick
