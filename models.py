"""
Session, message and image records for the image studio.
"""

import time
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
DEFAULT_ASPECT_RATIO = "3:4"

MIN_IMAGES = 1
MAX_IMAGES = 3
DEFAULT_NUMBER_OF_IMAGES = 1


def now_ms() -> int:
    return int(time.time() * 1000)


class Sender(str, Enum):
    USER = "user"
    AI = "ai"


class ImageAttachment(BaseModel):
    """An image supplied by the user, as MIME type plus base64 payload."""
    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: str

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class GeneratedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    data: str
    prompt: str
    timestamp: int = Field(default_factory=now_ms)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sender: Sender
    text: Optional[str] = None
    attachments: Optional[List[ImageAttachment]] = None
    generated_images: Optional[List[GeneratedImage]] = None
    timestamp: int = Field(default_factory=now_ms)


class Session(BaseModel):
    """
    One conversation with its gallery and generation settings.

    Sessions are immutable; every change produces a copy through
    ``model_copy(update=...)``.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    messages: List[Message] = Field(default_factory=list)
    gallery: List[GeneratedImage] = Field(default_factory=list)
    active_reference_image: Optional[ImageAttachment] = None
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    number_of_images: int = DEFAULT_NUMBER_OF_IMAGES
    last_modified: int = Field(default_factory=now_ms)

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Project"


def validate_aspect_ratio(aspect_ratio: str) -> str:
    if aspect_ratio not in ASPECT_RATIOS:
        raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")
    return aspect_ratio


def validate_number_of_images(count: int) -> int:
    if not MIN_IMAGES <= count <= MAX_IMAGES:
        raise ValueError(f"Number of images must be between {MIN_IMAGES} and {MAX_IMAGES}, got {count}")
    return count
