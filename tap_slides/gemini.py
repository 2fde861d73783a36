"""
Gemini image generation client.

Wraps google-genai and turns every failure into an ImageGenerationError with
one of the ErrorType classifications, so the workflow can show a specific
message for each case.
"""
import base64
import logging
import os
from typing import Any, Optional, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import ErrorType, ImageGenerationError
from .models import GeneratedImage

logger = logging.getLogger(__name__)

# Image generation configuration
ENV_API_KEY = "GEMINI_API_KEY"
ENV_MODEL = "TAP_IMAGE_MODEL"
DEFAULT_MODEL = "gemini-3-pro-image-preview"
DEFAULT_TIMEOUT = 60  # seconds
VALID_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")

# Finish reasons that mean the output was filtered rather than absent.
_POLICY_FINISH_REASONS = {
    "SAFETY",
    "IMAGE_SAFETY",
    "PROHIBITED_CONTENT",
    "IMAGE_PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "RECITATION",
}


class ImageGenerator(Protocol):
    """Anything that turns a prompt into image bytes."""

    def generate(self, prompt: str) -> GeneratedImage:
        ...


def has_api_key() -> bool:
    """Check if the GEMINI_API_KEY environment variable is set."""
    return bool(os.getenv(ENV_API_KEY))


def mask_api_key(text: str, api_key: Optional[str]) -> str:
    """Replace the API key in a string with [REDACTED]."""
    if not api_key:
        return text
    return text.replace(api_key, "[REDACTED]")


def classify_status(code: Optional[int], message: str) -> ErrorType:
    """
    Map an HTTP status and error message to an ErrorType.

    Args:
        code: HTTP status code reported by the API (may be None)
        message: Error message from the response body

    Returns:
        The matching ErrorType
    """
    if code in (401, 403):
        return ErrorType.AUTH
    if code == 429:
        return ErrorType.RATE_LIMIT
    if code == 400:
        lowered = message.lower()
        if "safety" in lowered or "policy" in lowered or "blocked" in lowered:
            return ErrorType.CONTENT_POLICY
        return ErrorType.INVALID_REQUEST
    if code is not None and 400 <= code < 500:
        return ErrorType.INVALID_REQUEST
    if code is not None and code >= 500:
        return ErrorType.SERVER
    return ErrorType.UNKNOWN


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value or "")


class GeminiImageClient:
    """
    Client for Gemini image generation.

    The API key is read from GEMINI_API_KEY when not passed explicitly. The
    request timeout is enforced by the underlying HTTP client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        aspect_ratio: Optional[str] = None,
        client: Any = None,
    ):
        self.api_key = api_key or os.getenv(ENV_API_KEY, "")
        if not self.api_key:
            raise ImageGenerationError(
                ErrorType.AUTH,
                f"API key is required: set {ENV_API_KEY} environment variable or pass it explicitly",
            )

        if aspect_ratio and aspect_ratio not in VALID_ASPECT_RATIOS:
            raise ImageGenerationError(ErrorType.INVALID_REQUEST, f"unsupported aspect ratio: {aspect_ratio}")

        self.model = model or os.getenv(ENV_MODEL) or DEFAULT_MODEL
        self.timeout = timeout
        self.aspect_ratio = aspect_ratio

        if client is None:
            client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )
        self._client = client

    def _config(self) -> types.GenerateContentConfig:
        kwargs = {"response_modalities": ["TEXT", "IMAGE"]}
        if self.aspect_ratio:
            kwargs["image_config"] = types.ImageConfig(aspect_ratio=self.aspect_ratio)
        return types.GenerateContentConfig(**kwargs)

    def generate(self, prompt: str) -> GeneratedImage:
        """
        Generate an image from a text prompt.

        Args:
            prompt: Description of the image

        Returns:
            GeneratedImage with raw bytes and MIME type

        Raises:
            ImageGenerationError: On any failure, classified by ErrorType
        """
        if not prompt:
            raise ImageGenerationError(ErrorType.INVALID_REQUEST, "prompt cannot be empty")

        logger.info(f"Generating image with {self.model} ({len(prompt)} char prompt)")

        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self._config(),
            )
        except genai_errors.APIError as e:
            raise self._classify_api_error(e) from e
        except (httpx.TimeoutException, TimeoutError) as e:
            raise ImageGenerationError(ErrorType.NETWORK, "request timed out") from e
        except (httpx.TransportError, ConnectionError) as e:
            message = mask_api_key(str(e), self.api_key)
            raise ImageGenerationError(ErrorType.NETWORK, f"failed to send request: {message}") from e

        return self._extract_image(response)

    def _classify_api_error(self, error: "genai_errors.APIError") -> ImageGenerationError:
        code = getattr(error, "code", None)
        message = mask_api_key(str(getattr(error, "message", None) or error), self.api_key)
        error_type = classify_status(code, message)
        logger.warning(f"Gemini API error {code}: {message}")
        return ImageGenerationError(error_type, message, code)

    def _extract_image(self, response: Any) -> GeneratedImage:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            raise ImageGenerationError(
                ErrorType.CONTENT_POLICY, f"prompt was blocked: {_enum_name(block_reason)}"
            )

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise ImageGenerationError(ErrorType.NO_IMAGE, "no candidates in response")

        finish_reasons = []
        for candidate in candidates:
            finish_reasons.append(_enum_name(getattr(candidate, "finish_reason", None)))
            content = getattr(candidate, "content", None)
            if content is None:
                continue
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is None or not getattr(inline, "data", None):
                    continue
                data = inline.data
                if isinstance(data, str):
                    try:
                        data = base64.b64decode(data)
                    except ValueError as e:
                        raise ImageGenerationError(
                            ErrorType.SERVER, f"failed to decode image data: {e}"
                        ) from e
                content_type = getattr(inline, "mime_type", None) or "image/png"
                logger.info(f"Received {len(data)} bytes of {content_type}")
                return GeneratedImage(data=data, content_type=content_type)

        if any(reason in _POLICY_FINISH_REASONS for reason in finish_reasons):
            raise ImageGenerationError(
                ErrorType.CONTENT_POLICY, f"generation stopped: {', '.join(finish_reasons)}"
            )
        raise ImageGenerationError(ErrorType.NO_IMAGE, "response did not contain an image")
