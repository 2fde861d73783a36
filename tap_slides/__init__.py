"""
Tap Slides

Markdown presentations with an interactive terminal dev session and an AI
image-generation assistant that edits the presentation in place.
"""

from .artifact_store import ArtifactStore
from .document_editor import DocumentEditor, insert_image_into_slide, replace_image_in_content
from .image_workflow import ImageWorkflow, WorkflowSignal
from .markdown_parser import parse_slides, split_slides_preserving_code_blocks
from .models import AIImageInfo, DevConfig, DevEvent, EventKind, GeneratedImage, SlideInfo
from .runtime import Program
from .session import DevSession, LoggingBroadcaster

__all__ = [
    'ArtifactStore',
    'DocumentEditor',
    'insert_image_into_slide',
    'replace_image_in_content',
    'ImageWorkflow',
    'WorkflowSignal',
    'parse_slides',
    'split_slides_preserving_code_blocks',
    'AIImageInfo',
    'DevConfig',
    'DevEvent',
    'EventKind',
    'GeneratedImage',
    'SlideInfo',
    'Program',
    'DevSession',
    'LoggingBroadcaster',
]
