"""
OpenAI Responses API helpers for the image generation tool.
Builds request input and pulls image data (or the reason there is none) out of responses.
"""

import logging
from typing import List, Dict, Optional, Any

from models import ImageAttachment

logger = logging.getLogger(__name__)

MAX_TEXT_PREVIEW = 200

# Completion statuses that count as a normal finish
NORMAL_STATUSES = (None, "completed")


class ImageGenerationError(Exception):
    """Base class for image generation failures."""


class MissingApiKeyError(ImageGenerationError):
    pass


class ModelTextResponseError(ImageGenerationError):
    """The model answered with text (often a refusal) instead of an image."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(preview_text(text))


class GenerationStoppedError(ImageGenerationError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Generation stopped due to: {reason}")


class NoImageDataError(ImageGenerationError):
    def __init__(self):
        super().__init__("No image data found in response.")


def preview_text(text: str, limit: int = MAX_TEXT_PREVIEW) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_image_request_input(prompt: str, reference_image: Optional[ImageAttachment] = None) -> List[Dict[str, Any]]:
    """Build a single user message carrying the optional reference image followed by the prompt."""
    content: List[Dict[str, Any]] = []
    if reference_image is not None:
        content.append({"type": "input_image", "image_url": reference_image.to_data_url()})
    content.append({"type": "input_text", "text": prompt})
    return [{"role": "user", "content": content}]


def _extract_text_from_item(item: Any) -> str:
    text_parts: List[str] = []
    for content in getattr(item, "content", []) or []:
        content_type = getattr(content, "type", None)
        if content_type in ("output_text", "text"):
            text_parts.append(getattr(content, "text", "") or "")
        elif content_type == "refusal":
            text_parts.append(getattr(content, "refusal", "") or "")
    return "".join(text_parts)


def _completion_reason(response: Any) -> Optional[str]:
    status = getattr(response, "status", None)
    if status in NORMAL_STATUSES:
        return None
    details = getattr(response, "incomplete_details", None)
    return getattr(details, "reason", None) or status


def extract_image_from_response(response: Any) -> str:
    """
    Return the base64 image carried by a Responses API payload.

    Output items are scanned in order and the first image wins. Without an
    image, any text the model produced becomes the error message; failing
    that, an abnormal completion status is reported.
    """
    text_output = ""
    for item in getattr(response, "output", []) or []:
        item_type = getattr(item, "type", None)
        if item_type == "image_generation_call":
            result = getattr(item, "result", None)
            if result:
                return result
        elif item_type == "message":
            text_output += _extract_text_from_item(item)

    if text_output:
        raise ModelTextResponseError(text_output)

    reason = _completion_reason(response)
    if reason:
        raise GenerationStoppedError(reason)

    raise NoImageDataError()
