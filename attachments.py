"""
Conversion between uploaded image files and inline base64 attachments.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Union

from models import GeneratedImage, ImageAttachment

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"
REUSED_IMAGE_NAME = "edited-image.png"


class AttachmentReadError(Exception):
    """Raised when an uploaded file cannot be read or decoded."""


class PendingUpload:
    """An in-memory file that quacks like a Streamlit UploadedFile."""

    def __init__(self, name: str, type: str, data: bytes):
        self.name = name
        self.type = type
        self._data = data

    def getvalue(self) -> bytes:
        return self._data


def _encode(content: Union[bytes, str]) -> str:
    if isinstance(content, str):
        # Data URL ("data:image/png;base64,....") or bare base64 text
        if content.startswith("data:"):
            return content.split(",", 1)[1]
        return content
    return base64.b64encode(content).decode("utf-8")


async def file_to_base64(file: Any) -> str:
    """Read a selected file and return its content as base64 without any data-URL prefix."""
    try:
        content = await asyncio.to_thread(file.getvalue)
        return _encode(content)
    except Exception as e:
        logger.error(f"Failed to read file {getattr(file, 'name', '<unnamed>')}: {str(e)}")
        raise AttachmentReadError(f"Could not read file: {str(e)}") from e


async def read_attachment(file: Any) -> ImageAttachment:
    data = await file_to_base64(file)
    mime_type = getattr(file, "type", None) or DEFAULT_MIME_TYPE
    return ImageAttachment(mime_type=mime_type, data=data)


def image_to_upload(image: GeneratedImage) -> PendingUpload:
    """Turn a generated image back into a pending upload so it can seed the next edit."""
    try:
        raw = base64.b64decode(image.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AttachmentReadError(f"Image {image.id} has invalid data: {str(e)}") from e
    return PendingUpload(REUSED_IMAGE_NAME, "image/png", raw)
