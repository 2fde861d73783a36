"""
Data models for the dev session.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class EventKind(str, Enum):
    """Kind of an entry in the recent-activity log."""

    RELOAD = "reload"
    ACTION = "action"
    ERROR = "error"


class UIMode(Enum):
    """Which reducer currently owns keyboard input."""

    NORMAL = "normal"
    THEME_PICKER = "theme_picker"
    IMAGE_WORKFLOW = "image_workflow"


class WorkflowStep(Enum):
    """Steps of the image-generation workflow, in order."""

    SLIDE_SELECT = 0
    IMAGE_SELECT = 1
    PROMPT = 2
    GENERATING = 3
    DONE = 4


@dataclass
class DevEvent:
    """
    A hot reload, user action or error shown in the recent-activity list.
    """
    kind: EventKind
    message: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Theme:
    name: str
    description: str


@dataclass
class DevConfig:
    """
    Static configuration of a dev session.
    """
    audience_url: str
    presenter_url: str
    markdown_file: str
    current_theme: str = "paper"
    port: int = 3000
    presenter_password: str = ""
    qr_code_ascii: str = ""  # pre-rendered QR code for the audience URL


@dataclass
class AIImageInfo:
    """
    One AI image annotation: the prompt comment and the image reference below it.
    """
    prompt: str
    image_path: str


@dataclass
class SlideInfo:
    """
    A slide as listed in the slide selector.
    """
    index: int  # zero-based, counting only non-empty slides
    title: str
    ai_images: List[AIImageInfo] = field(default_factory=list)

    @property
    def has_ai_images(self) -> bool:
        return len(self.ai_images) > 0

    @property
    def ai_image_count(self) -> int:
        return len(self.ai_images)


@dataclass
class ImageSelectOption:
    """
    Entry of the "add new or regenerate" list.
    """
    label: str
    ai_image: Optional[AIImageInfo] = None  # None for "Add new image"

    @property
    def is_add_new(self) -> bool:
        return self.ai_image is None


@dataclass
class GeneratedImage:
    """
    Raw bytes returned by the image-generation API.
    """
    data: bytes
    content_type: str = "image/png"
