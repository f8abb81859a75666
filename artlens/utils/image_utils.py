"""Image loading and format helpers."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

# Pillow format name -> MIME type accepted for visitor photos.
_FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

_MIME_SUFFIXES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def load_image_as_array(image_data: Union[bytes, str, Path, np.ndarray]) -> np.ndarray:
    """Load an image and return it as an RGB float32 array normalized to [0, 1].

    Args:
        image_data: Image bytes, file path, or existing numpy array.

    Returns:
        RGB image as float32 array with shape (H, W, 3) and values in [0, 1].

    Raises:
        ValueError: If the data is not a decodable image.
    """
    if isinstance(image_data, np.ndarray):
        if image_data.dtype == np.uint8 or image_data.max() > 1.0:
            return image_data.astype(np.float32) / 255.0
        return image_data.astype(np.float32)

    source = io.BytesIO(image_data) if isinstance(image_data, bytes) else image_data
    try:
        with Image.open(source) as img:
            rgb_image = img.convert("RGB")
            array = np.asarray(rgb_image, dtype=np.float32) / 255.0
    except UnidentifiedImageError as exc:
        raise ValueError(f"Unrecognised image data: {exc}") from exc
    return array


def detect_image_type(image_bytes: bytes) -> Optional[str]:
    """Return the MIME type of ``image_bytes`` or ``None`` if it is not a supported image."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return _FORMAT_MIME_TYPES.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def suffix_for(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Pick a file suffix for a stored upload, preferring the original name's."""
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix:
            return suffix
    return _MIME_SUFFIXES.get(content_type or "", ".jpg")
