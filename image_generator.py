"""
Image request service.
Assembles the prompt, fans out one Responses API call per requested image and
collects the base64 results.
"""

import asyncio
import logging
from typing import List, Any, Optional
from openai import AsyncOpenAI

from config import get_settings
from models import ImageAttachment, validate_aspect_ratio, validate_number_of_images
from responses import (
    MissingApiKeyError,
    extract_image_from_response,
    format_image_request_input,
)

logger = logging.getLogger(__name__)

STYLE_INSTRUCTION = "Style: product editorial photography, award winning style, for fashion and other products."
EDIT_COMPOSITION = "Rearrange the product into a more editorial professional product photo."
NEW_COMPOSITION = "Composition: Professional editorial product layout."

FALLBACK_EDIT_PROMPT = "Generate a variation of this image."
FALLBACK_NEW_PROMPT = "Generate an image of a high-end product."

SQUARE_SIZE = "1024x1024"
PORTRAIT_SIZE = "1024x1536"
LANDSCAPE_SIZE = "1536x1024"


def build_prompt(prompt: str, aspect_ratio: str, has_reference: bool) -> str:
    """Merge the user's text with the house style and the aspect ratio directive."""
    if prompt and prompt.strip():
        core_prompt = prompt.strip()
    else:
        core_prompt = FALLBACK_EDIT_PROMPT if has_reference else FALLBACK_NEW_PROMPT

    composition = EDIT_COMPOSITION if has_reference else NEW_COMPOSITION
    return f"{core_prompt} {STYLE_INSTRUCTION} {composition} Aspect ratio: {aspect_ratio}."


def size_for_aspect_ratio(aspect_ratio: str) -> str:
    """Pick the image tool canvas closest to the requested ratio."""
    width, height = (int(side) for side in aspect_ratio.split(":"))
    if width == height:
        return SQUARE_SIZE
    return PORTRAIT_SIZE if height > width else LANDSCAPE_SIZE


async def generate_image_async(client: Any, prompt: str, index: int, total: int,
                               aspect_ratio: str, model: str, quality: str,
                               reference_image: Optional[ImageAttachment] = None) -> str:
    """Generate a single image and return its base64 payload."""
    logger.debug(f"[{index}/{total}] Generating: {prompt[:60]}...")

    response = await client.responses.create(
        model=model,
        input=format_image_request_input(prompt, reference_image),
        tools=[
            {
                "type": "image_generation",
                "size": size_for_aspect_ratio(aspect_ratio),
                "quality": quality,
            }
        ],
    )

    image_base64 = extract_image_from_response(response)
    logger.info(f"[{index}/{total}] Image received ({len(image_base64)} base64 chars)")
    return image_base64


async def generate_or_edit_image(
    prompt: str,
    aspect_ratio: str,
    number_of_images: int,
    reference_image: Optional[ImageAttachment] = None,
    api_key: Optional[str] = None,
    client: Any = None,
) -> List[str]:
    """
    Generate ``number_of_images`` images (or edits of ``reference_image``).

    All requests run concurrently. The call succeeds only if every request
    produces an image; the first failure cancels the rest and is re-raised.
    Results keep the order in which the requests were issued.
    """
    validate_aspect_ratio(aspect_ratio)
    validate_number_of_images(number_of_images)
    settings = get_settings()

    if client is None:
        api_key = api_key or settings.api_key
        if not api_key:
            raise MissingApiKeyError("API Key not found. Please check your environment variables.")
        client = AsyncOpenAI(api_key=api_key)

    full_prompt = build_prompt(prompt, aspect_ratio, reference_image is not None)

    tasks = [
        asyncio.ensure_future(generate_image_async(
            client, full_prompt, i + 1, number_of_images, aspect_ratio,
            settings.image_model, settings.image_quality, reference_image
        ))
        for i in range(number_of_images)
    ]

    try:
        results = await asyncio.gather(*tasks)
    except Exception as e:
        for task in tasks:
            task.cancel()
        logger.error(f"Image generation failed: {str(e)}")
        raise

    return list(results)
