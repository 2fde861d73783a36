"""
Exception types shared across the dev session core.

Expected failures (missing credentials, bad prompts, API errors, filesystem
problems while saving) are caught at the reducer boundary and turned into
error strings on the session or workflow state. Only invariant violations are
allowed to escape.
"""
from enum import Enum
from typing import Optional


class TapError(Exception):
    """Base class for all tap_slides errors."""


class ConfigError(TapError):
    """Environment or configuration problem (missing credential, bad file)."""


class DocumentError(TapError):
    """The markdown source could not be mutated as requested."""


class InvalidSlideIndexError(DocumentError):
    """Raised when a slide index is negative or past the last slide."""

    def __init__(self, index: int, count: int):
        super().__init__(f"invalid slide index: {index} (have {count} slides)")
        self.index = index
        self.count = count


class AnnotationNotFoundError(DocumentError):
    """Raised when the annotation to replace is not present in the document."""

    def __init__(self, prompt: str, image_path: str):
        super().__init__("could not find the existing image reference to replace")
        self.prompt = prompt
        self.image_path = image_path


class ArtifactStoreError(TapError):
    """The artifact directory or file could not be written."""


class StorePathNotDirectoryError(ArtifactStoreError):
    """A non-directory entry already occupies the artifact directory path."""

    def __init__(self, path):
        super().__init__(f"images path exists but is not a directory: {path}")
        self.path = path


class ErrorType(str, Enum):
    """Closed classification of image-generation failures."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CONTENT_POLICY = "content_policy"
    INVALID_REQUEST = "invalid_request"
    NO_IMAGE = "no_image"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"


class ImageGenerationError(TapError):
    """Structured failure reported by the image-generation capability."""

    def __init__(self, error_type: ErrorType, message: str, code: Optional[int] = None):
        self.error_type = ErrorType(error_type)
        self.message = message
        self.code = code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.code:
            return f"{self.error_type.value}: {self.message} (code: {self.code})"
        return f"{self.error_type.value}: {self.message}"
