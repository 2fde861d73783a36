"""Test in-place edits of presentation markdown."""

import pytest

from tap_slides.document_editor import (
    DocumentEditor,
    format_annotation,
    insert_image_into_slide,
    replace_image_in_content,
)
from tap_slides.errors import AnnotationNotFoundError, InvalidSlideIndexError
from tap_slides.markdown_parser import parse_slides
from tap_slides.models import AIImageInfo


def test_format_annotation():
    """Test the annotation markdown format."""
    assert format_annotation("a cat", "images/cat.png") == "<!-- ai-prompt: a cat -->\n![](images/cat.png)"


def test_insert_appends_to_selected_slide():
    """Test that the annotation lands at the end of the selected slide."""
    content = "# One\n\ntext\n---\n# Two\n\n\n---\n# Three\n"
    updated = insert_image_into_slide(content, 1, "a cat", "images/cat.png")

    assert updated == (
        "# One\n\ntext\n"
        "---\n"
        "# Two\n\n<!-- ai-prompt: a cat -->\n![](images/cat.png)\n"
        "---\n"
        "# Three\n"
    )


def test_insert_leaves_other_slides_untouched(presentation):
    """Test that insertion only changes the target slide."""
    content = presentation.read_text(encoding="utf-8")
    updated = insert_image_into_slide(content, 2, "sunset", "images/sunset.png")

    before = parse_slides(content)
    after = parse_slides(updated)

    assert len(after) == len(before)
    assert after[0] == before[0]
    assert after[1] == before[1]
    assert after[2].ai_images == [AIImageInfo("sunset", "images/sunset.png")]

    # Frontmatter and the fenced separator are preserved byte-for-byte
    assert updated.startswith("---\ntitle: Demo\ntheme: noir\n---\n")
    assert "key: value\n---\nother: value\n```" in updated


def test_insert_respects_code_fences():
    """Test that a --- inside a code block does not shift slide indexes."""
    content = "# One\n```\n---\n```\n---\n# Two\n"
    updated = insert_image_into_slide(content, 0, "p", "images/p.png")

    assert updated == "# One\n```\n---\n```\n\n<!-- ai-prompt: p -->\n![](images/p.png)\n---\n# Two\n"


def test_insert_skips_blank_segments():
    """Test that the slide index counts only non-empty slides."""
    content = "\n---\n# One\n---\n\n---\n# Two\n"
    updated = insert_image_into_slide(content, 1, "p", "images/p.png")

    assert updated.endswith("# Two\n\n<!-- ai-prompt: p -->\n![](images/p.png)\n")
    assert updated.startswith("\n---\n# One\n---\n\n---\n")


def test_insert_invalid_index():
    """Test that out-of-range slide indexes are rejected."""
    content = "# One\n---\n# Two\n"

    with pytest.raises(InvalidSlideIndexError) as excinfo:
        insert_image_into_slide(content, 2, "p", "images/p.png")
    assert "invalid slide index: 2 (have 2 slides)" in str(excinfo.value)

    with pytest.raises(InvalidSlideIndexError):
        insert_image_into_slide(content, -1, "p", "images/p.png")


def test_replace_annotation_in_place():
    """Test that replacement keeps the surrounding text."""
    content = "# Slide\n\n<!-- ai-prompt: old prompt -->\n![](images/old.png)\n\nAfter\n"
    updated = replace_image_in_content(content, "old prompt", "images/old.png", "new prompt", "images/new.png")

    assert updated == "# Slide\n\n<!-- ai-prompt: new prompt -->\n![](images/new.png)\n\nAfter\n"


def test_replace_is_reversible(presentation):
    """Test that replacing back with the old values restores the document."""
    content = presentation.read_text(encoding="utf-8")
    updated = replace_image_in_content(content, "a diagram of servers", "images/old.png", "v2", "images/v2.png")
    restored = replace_image_in_content(updated, "v2", "images/v2.png", "a diagram of servers", "images/old.png")

    assert updated != content
    assert restored == content


def test_replace_matches_literally():
    """Test that regex characters in prompts and paths are matched literally."""
    content = "<!-- ai-prompt: cost (USD) + tax? -->\n![](images/a[1].png)\n"
    updated = replace_image_in_content(content, "cost (USD) + tax?", "images/a[1].png", r"C:\new \1 $0", "images/b.png")

    assert updated == "<!-- ai-prompt: C:\\new \\1 $0 -->\n![](images/b.png)\n"


def test_replace_not_found():
    """Test that a missing annotation raises."""
    with pytest.raises(AnnotationNotFoundError):
        replace_image_in_content("# Slide\n", "missing", "images/x.png", "new", "images/y.png")


def test_editor_round_trip(presentation):
    """Test DocumentEditor reading and writing the file."""
    editor = DocumentEditor(presentation)

    editor.insert_image(0, "hello", "images/hello.png")
    slides = parse_slides(editor.read())
    assert slides[0].ai_images == [AIImageInfo("hello", "images/hello.png")]

    editor.replace_image(AIImageInfo("hello", "images/hello.png"), "bye", "images/bye.png")
    slides = parse_slides(editor.read())
    assert slides[0].ai_images == [AIImageInfo("bye", "images/bye.png")]


def test_editor_preserves_crlf_in_other_slides(tmp_path):
    """Test that Windows line endings outside the edit survive the write."""
    path = tmp_path / "slides.md"
    path.write_bytes(b"# One\n---\n# Two\r\nline\r\n")

    DocumentEditor(path).insert_image(0, "p", "images/p.png")

    data = path.read_bytes()
    assert data.endswith(b"---\n# Two\r\nline\r\n")
    assert data.startswith(b"# One\n\n<!-- ai-prompt: p -->\n![](images/p.png)\n")
