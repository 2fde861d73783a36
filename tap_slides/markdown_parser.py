"""
Slide-level parsing of presentation markdown.

The presentation is one markdown file: optional YAML frontmatter followed by
slides separated by ``---`` lines. A ``---`` inside a fenced code block is
content, not a separator, so fence ranges are taken from the markdown-it-py
token stream instead of guessed with regexes.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Set, Tuple

import yaml
from markdown_it import MarkdownIt
from mdit_py_plugins.front_matter import front_matter_plugin

from .models import AIImageInfo, SlideInfo

logger = logging.getLogger(__name__)

# Signature of the slide-boundary capability: body -> ordered raw segments.
SlideSplitter = Callable[[str], List[str]]

FRONTMATTER_RE = re.compile(r"^---\n.*?\n---\n?", re.DOTALL)
SLIDE_DELIMITER_RE = re.compile(r"^---\s*$")
HEADING_RE = re.compile(r"^#+[ \t]+(.+)$", re.MULTILINE)

# Prompt comment with the image reference directly on the next line
# (leading spaces allowed, blank lines not). Group 1: prompt, group 2: path.
AI_IMAGE_RE = re.compile(r"<!--\s*ai-prompt:\s*(.+?)\s*-->\n[ \t]*!\[\]\(([^)]+)\)")

MAX_TITLE_LENGTH = 50

_fence_processor = MarkdownIt("commonmark")
_frontmatter_processor = MarkdownIt("commonmark").use(front_matter_plugin)


def truncate(text: str, limit: int) -> str:
    """Shorten *text* to *limit* characters, marking the cut with ``...``."""
    if len(text) > limit:
        return text[:limit - 3] + "..."
    return text


def split_frontmatter(content: str) -> Tuple[str, str]:
    """
    Separate a leading frontmatter block from the slide body.

    Args:
        content: Full markdown document

    Returns:
        Tuple of (frontmatter including both delimiters, remaining body).
        The frontmatter is an empty string when the document has none.
    """
    match = FRONTMATTER_RE.match(content)
    if not match:
        return "", content
    return match.group(0), content[match.end():]


def parse_frontmatter(content: str) -> Dict[str, Any]:
    """
    Parse the YAML frontmatter of a presentation.

    Invalid YAML is logged and treated as empty so a typo in the header never
    prevents the dev session from starting.
    """
    tokens = _frontmatter_processor.parse(content)
    if not tokens or tokens[0].type != "front_matter":
        return {}

    try:
        data = yaml.safe_load(tokens[0].content)
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring invalid frontmatter: {e}")
        return {}

    if not isinstance(data, dict):
        return {}
    return data


def _split_lines(text: str) -> List[str]:
    # Split on "\n" only so line numbers agree with markdown-it's token maps.
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _fenced_lines(body: str) -> Set[int]:
    """Line numbers (zero-based) covered by fenced code blocks, fences included."""
    fenced: Set[int] = set()
    # markdown-it treats a lone "\r" as a line break; "\n" is the only one we count.
    for token in _fence_processor.parse(body.replace("\r", "")):
        if token.type == "fence" and token.map:
            start, end = token.map
            fenced.update(range(start, end))
    return fenced


def split_slides_preserving_code_blocks(body: str) -> List[str]:
    """
    Split a slide body on ``---`` lines that are outside fenced code blocks.

    Segments do not include the separator line itself, and empty segments are
    kept so callers can rebuild the document with ``"---\\n".join(segments)``.

    Args:
        body: Markdown without frontmatter

    Returns:
        Ordered list of raw slide segments
    """
    fenced = _fenced_lines(body)
    segments: List[str] = []
    current: List[str] = []

    for lineno, line in enumerate(_split_lines(body)):
        if lineno not in fenced and SLIDE_DELIMITER_RE.match(line.rstrip("\n")):
            segments.append("".join(current))
            current = []
            continue
        current.append(line)

    segments.append("".join(current))
    return segments


def parse_ai_images(content: str) -> List[AIImageInfo]:
    """
    Extract AI image annotations from slide content, in source order.
    """
    return [
        AIImageInfo(prompt=match.group(1), image_path=match.group(2))
        for match in AI_IMAGE_RE.finditer(content)
    ]


def extract_slide_title(content: str) -> str:
    """
    Title of a slide: the first heading, else the first non-comment line.
    """
    match = HEADING_RE.search(content)
    if match:
        return truncate(match.group(1).strip(), MAX_TITLE_LENGTH)

    for line in content.split("\n"):
        line = line.strip()
        if line.startswith("<!--"):
            continue
        if line:
            return truncate(line, MAX_TITLE_LENGTH)

    return "(empty slide)"


def parse_slides(content: str, splitter: SlideSplitter = split_slides_preserving_code_blocks) -> List[SlideInfo]:
    """
    List the slides of a presentation the way the renderer counts them.

    Whitespace-only segments are skipped, so ``SlideInfo.index`` is the
    user-visible slide number minus one.

    Args:
        content: Full markdown document, frontmatter included
        splitter: Slide-boundary capability

    Returns:
        One SlideInfo per non-empty slide
    """
    _, body = split_frontmatter(content)

    slides: List[SlideInfo] = []
    for part in splitter(body):
        part = part.strip()
        if not part:
            continue

        slides.append(SlideInfo(
            index=len(slides),
            title=extract_slide_title(part),
            ai_images=parse_ai_images(part),
        ))

    logger.debug(f"Parsed {len(slides)} slides")
    return slides
