#!/usr/bin/env python3
"""Content-addressed storage for generated images.

Generated images live in an ``images`` directory next to the presentation
markdown.  File names are derived from the image bytes
(``generated-<first 8 hex chars of sha256>.<ext>``) so the same image always
maps to the same file.  Paths handed back to callers are relative to the
markdown file's directory and use forward slashes, which keeps the markdown
portable between machines.
"""
from __future__ import annotations

import hashlib
import io
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import ArtifactStoreError, StorePathNotDirectoryError

logger = logging.getLogger(__name__)

__all__ = ["ArtifactStore", "filename_for", "extension_for", "describe_image"]

IMAGES_DIR_NAME = "images"
FILE_MODE = 0o644
DIR_MODE = 0o755

CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


def extension_for(content_type: str) -> str:
    """File extension for a MIME type; ``png`` when the type is unknown or empty."""
    return CONTENT_TYPE_EXTENSIONS.get(content_type, "png")


def filename_for(data: bytes, content_type: str) -> str:
    """Content-hashed file name for an image.

    Parameters
    ----------
    data
        Raw image bytes.
    content_type
        MIME type reported by the generator, used only for the extension.
    """
    short_hash = hashlib.sha256(data).hexdigest()[:8]
    return f"generated-{short_hash}.{extension_for(content_type)}"


def describe_image(data: bytes) -> Optional[Tuple[int, int, str]]:
    """Return ``(width, height, format)`` of an encoded image, or None if unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size[0], img.size[1], img.format or ""
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not identify generated image: {e}")
        return None


class ArtifactStore:
    """The ``images`` directory that belongs to one presentation file."""

    def __init__(self, markdown_file: str | Path):
        self.markdown_file = Path(markdown_file)
        self.base_dir = self.markdown_file.parent
        self.directory = self.base_dir / IMAGES_DIR_NAME

    def ensure_store_directory(self) -> Path:
        """Create the images directory if needed and return it.

        Raises
        ------
        StorePathNotDirectoryError
            If a file (or anything but a directory) already sits at that path.
        ArtifactStoreError
            If the directory cannot be created.
        """
        if self.directory.exists() or self.directory.is_symlink():
            if not self.directory.is_dir():
                raise StorePathNotDirectoryError(self.directory)
            return self.directory

        try:
            self.directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactStoreError(f"failed to create images directory: {exc}") from exc

        logger.info(f"Created images directory {self.directory}")
        return self.directory

    def resolve(self, relative_path: str) -> Path:
        """Absolute location of a path written in the markdown."""
        return (self.base_dir / relative_path).resolve()

    def save(self, data: bytes, content_type: str) -> str:
        """Write an image into the store.

        Returns
        -------
        str
            Path relative to the markdown file's directory, e.g.
            ``images/generated-a1b2c3d4.png``.
        """
        directory = self.ensure_store_directory()
        filename = filename_for(data, content_type)
        full_path = directory / filename

        try:
            full_path.write_bytes(data)
            os.chmod(full_path, FILE_MODE)
        except OSError as exc:
            raise ArtifactStoreError(f"failed to write image file: {exc}") from exc

        logger.info(f"Saved {len(data)} bytes to {full_path}")
        return str(PurePosixPath(IMAGES_DIR_NAME, filename))

    def delete(self, relative_path: str) -> bool:
        """Remove an artifact referenced from the markdown.

        Only files inside the presentation directory are touched.  A missing
        file is not an error.

        Returns
        -------
        bool
            True if a file was removed.
        """
        full_path = self.resolve(relative_path)
        if self.base_dir.resolve() not in full_path.parents:
            logger.warning(f"Refusing to delete {relative_path}: outside {self.base_dir}")
            return False

        try:
            full_path.unlink()
        except FileNotFoundError:
            logger.debug(f"Old image {full_path} already gone")
            return False
        except OSError as exc:
            raise ArtifactStoreError(f"failed to delete old image: {exc}") from exc

        logger.info(f"Deleted {full_path}")
        return True
