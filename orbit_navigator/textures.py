"""
Earth surface image loading.

Downloads an image over HTTP and decodes it to an RGB(A) uint8 array. Any
failure is reported as AssetLoadError; callers keep the flat Earth color.
"""

import io
import logging
from typing import Optional

import numpy as np
import requests
from PIL import Image

from config import config
from orbit_navigator.exceptions import AssetLoadError

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes to an (H, W, 3|4) uint8 array."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGB")
            return np.asarray(image, dtype=np.uint8).copy()
    except (OSError, ValueError) as e:
        raise AssetLoadError(f"Could not decode image: {e}")


def load_texture(url: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None) -> np.ndarray:
    """
    Fetch and decode the Earth surface image.

    Args:
        url: Image URL (default: EARTH_TEXTURE_URL setting)
        session: Optional requests session
        timeout: Request timeout in seconds

    Returns:
        Image array

    Raises:
        AssetLoadError: on any network or decode failure
    """
    url = url or config.EARTH_TEXTURE_URL
    http = session or requests
    try:
        response = http.get(url, timeout=config.REQUEST_TIMEOUT if timeout is None else timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise AssetLoadError(f"Texture download failed for {url}: {e}")

    image = decode_image(response.content)
    logger.info(f"Loaded Earth texture {image.shape[1]}x{image.shape[0]} from {url}")
    return image
