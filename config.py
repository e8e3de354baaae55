"""
Runtime configuration for the image studio.
Reads settings from the environment (and a local .env file).
"""

import os
import logging
from typing import NamedTuple, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Set up logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gpt-4.1"
DEFAULT_IMAGE_QUALITY = "high"
DEFAULT_DATA_DIR = ".image_studio"


class Settings(NamedTuple):
    api_key: Optional[str]
    image_model: str
    image_quality: str
    data_dir: str


def get_settings() -> Settings:
    """Build a Settings value from the current environment."""
    settings = Settings(
        api_key=os.getenv("OPENAI_API_KEY") or None,
        image_model=os.getenv("IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
        image_quality=os.getenv("IMAGE_QUALITY", DEFAULT_IMAGE_QUALITY),
        data_dir=os.getenv("IMAGE_STUDIO_DATA_DIR", DEFAULT_DATA_DIR),
    )
    logger.debug(f"Loaded settings: model={settings.image_model}, data_dir={settings.data_dir}")
    return settings
