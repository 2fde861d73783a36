"""Test content-addressed image storage."""

import hashlib
import os
import stat

import pytest

from tap_slides.artifact_store import ArtifactStore, describe_image, extension_for, filename_for
from tap_slides.errors import StorePathNotDirectoryError


def test_filename_is_deterministic():
    """Test that identical bytes map to the same file name."""
    data = b"\x89PNG fake image bytes"
    expected = "generated-" + hashlib.sha256(data).hexdigest()[:8] + ".png"

    assert filename_for(data, "image/png") == expected
    assert filename_for(data, "image/png") == filename_for(data, "image/png")
    assert filename_for(b"other bytes", "image/png") != expected


def test_extension_mapping():
    """Test MIME type to extension mapping."""
    assert extension_for("image/png") == "png"
    assert extension_for("image/jpeg") == "jpg"
    assert extension_for("image/jpg") == "jpg"
    assert extension_for("image/gif") == "gif"
    assert extension_for("image/webp") == "webp"

    # Unknown or missing types default to png
    assert extension_for("") == "png"
    assert extension_for("application/octet-stream") == "png"


def test_save_returns_relative_posix_path(tmp_path, png_bytes):
    """Test that saved paths are relative to the markdown directory."""
    store = ArtifactStore(tmp_path / "slides.md")
    path = store.save(png_bytes, "image/png")

    assert path == "images/" + filename_for(png_bytes, "image/png")
    assert (tmp_path / path).read_bytes() == png_bytes


def test_save_is_idempotent(tmp_path, png_bytes):
    """Test that saving the same image twice reuses the file."""
    store = ArtifactStore(tmp_path / "slides.md")

    first = store.save(png_bytes, "image/png")
    second = store.save(png_bytes, "image/png")

    assert first == second
    assert len(list((tmp_path / "images").iterdir())) == 1


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_file_and_directory_modes(tmp_path, png_bytes):
    """Test permissions of the created directory and file."""
    store = ArtifactStore(tmp_path / "slides.md")
    path = store.save(png_bytes, "image/jpeg")

    assert path.endswith(".jpg")
    file_mode = stat.S_IMODE((tmp_path / path).stat().st_mode)
    assert file_mode == 0o644
    assert (tmp_path / "images").is_dir()


def test_ensure_store_directory_existing(tmp_path):
    """Test that an existing directory is accepted."""
    (tmp_path / "images").mkdir()
    store = ArtifactStore(tmp_path / "slides.md")

    assert store.ensure_store_directory() == tmp_path / "images"
    assert store.ensure_store_directory() == tmp_path / "images"


def test_store_path_occupied_by_file(tmp_path, png_bytes):
    """Test that a regular file at the images path is reported."""
    (tmp_path / "images").write_text("not a directory")
    store = ArtifactStore(tmp_path / "slides.md")

    with pytest.raises(StorePathNotDirectoryError):
        store.save(png_bytes, "image/png")


def test_delete(tmp_path, png_bytes):
    """Test deleting an artifact by its markdown path."""
    store = ArtifactStore(tmp_path / "slides.md")
    path = store.save(png_bytes, "image/png")

    assert store.delete(path) is True
    assert not (tmp_path / path).exists()

    # Already gone is not an error
    assert store.delete(path) is False


def test_delete_refuses_paths_outside_presentation(tmp_path):
    """Test that paths escaping the presentation directory are left alone."""
    project = tmp_path / "project"
    project.mkdir()
    outside = tmp_path / "keep.png"
    outside.write_bytes(b"data")

    store = ArtifactStore(project / "slides.md")

    assert store.delete("../keep.png") is False
    assert outside.exists()


def test_describe_image(png_factory):
    """Test image sniffing with Pillow."""
    assert describe_image(png_factory(7, 5)) == (7, 5, "PNG")
    assert describe_image(b"not an image") is None
