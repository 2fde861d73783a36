"""
In-place edits of the presentation markdown.

Every edit reads the whole file, changes exactly one place and writes it back.
Text outside the edited slide or annotation is returned byte-for-byte.
"""
import logging
import re
from pathlib import Path
from typing import Union

from .errors import AnnotationNotFoundError, InvalidSlideIndexError
from .markdown_parser import SlideSplitter, split_frontmatter, split_slides_preserving_code_blocks
from .models import AIImageInfo

logger = logging.getLogger(__name__)

SLIDE_SEPARATOR = "---\n"


def format_annotation(prompt: str, image_path: str) -> str:
    """Markdown for an AI image: the prompt comment, then the image reference."""
    return f"<!-- ai-prompt: {prompt} -->\n![]({image_path})"


def insert_image_into_slide(
    content: str,
    slide_index: int,
    prompt: str,
    image_path: str,
    splitter: SlideSplitter = split_slides_preserving_code_blocks,
) -> str:
    """
    Append an AI image annotation to the end of one slide.

    Args:
        content: Full markdown document
        slide_index: Zero-based index among non-empty slides
        prompt: Prompt used to generate the image
        image_path: Path of the image relative to the markdown file
        splitter: Slide-boundary capability

    Returns:
        The updated document

    Raises:
        InvalidSlideIndexError: If slide_index does not name a slide
    """
    frontmatter, body = split_frontmatter(content)
    parts = splitter(body)

    # Empty segments are not slides (same rule as parse_slides).
    slide_parts = [i for i, part in enumerate(parts) if part.strip()]

    if slide_index < 0 or slide_index >= len(slide_parts):
        raise InvalidSlideIndexError(slide_index, len(slide_parts))

    part_index = slide_parts[slide_index]
    trimmed = parts[part_index].rstrip(" \t\n")
    parts[part_index] = trimmed + "\n\n" + format_annotation(prompt, image_path) + "\n"

    return frontmatter + SLIDE_SEPARATOR.join(parts)


def replace_image_in_content(
    content: str,
    old_prompt: str,
    old_image_path: str,
    new_prompt: str,
    new_image_path: str,
) -> str:
    """
    Swap an existing annotation for a new one without moving it.

    Both old values are matched literally. Replacing back with the old values
    restores the original document.

    Raises:
        AnnotationNotFoundError: If the old annotation is not in the document
    """
    pattern = re.compile(
        r"<!--\s*ai-prompt:\s*" + re.escape(old_prompt) + r"\s*-->\n[ \t]*!\[\]\(" + re.escape(old_image_path) + r"\)"
    )

    if not pattern.search(content):
        raise AnnotationNotFoundError(old_prompt, old_image_path)

    replacement = format_annotation(new_prompt, new_image_path)
    # Callable replacement: prompts may contain backslashes.
    return pattern.sub(lambda _match: replacement, content)


class DocumentEditor:
    """
    Read-modify-write access to one presentation file.
    """

    def __init__(self, markdown_file: Union[str, Path], splitter: SlideSplitter = split_slides_preserving_code_blocks):
        self.markdown_file = Path(markdown_file)
        self.splitter = splitter

    def read(self) -> str:
        # newline="" keeps CRLF files intact on write-back.
        with open(self.markdown_file, "r", encoding="utf-8", newline="") as f:
            return f.read()

    def write(self, content: str) -> None:
        with open(self.markdown_file, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def insert_image(self, slide_index: int, prompt: str, image_path: str) -> None:
        """Append an annotation to the given slide and save the file."""
        content = self.read()
        updated = insert_image_into_slide(content, slide_index, prompt, image_path, self.splitter)
        self.write(updated)
        logger.info(f"Inserted {image_path} into slide {slide_index + 1} of {self.markdown_file}")

    def replace_image(self, old: AIImageInfo, new_prompt: str, new_image_path: str) -> None:
        """Rewrite an existing annotation in place and save the file."""
        content = self.read()
        updated = replace_image_in_content(content, old.prompt, old.image_path, new_prompt, new_image_path)
        self.write(updated)
        logger.info(f"Replaced {old.image_path} with {new_image_path} in {self.markdown_file}")
