"""Image loading that keeps the EXIF orientation for the enhancer."""

import logging
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from chart_scanner.errors import InvalidImageError

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112


def read_orientation(image_path: str | Path) -> int:
    """Return the EXIF orientation tag of an image file, 1 if absent."""
    try:
        with Image.open(image_path) as img:
            orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except (UnidentifiedImageError, OSError) as e:
        logger.debug("No EXIF orientation for %s: %s", image_path, e)
        return 1
    return int(orientation) if orientation else 1


def load_image(image_path: str | Path) -> tuple[np.ndarray, int]:
    """
    Load an image as stored on disk, plus its EXIF orientation.

    OpenCV is told to ignore the orientation so that rotation is left
    to the enhancement pipeline.

    Args:
        image_path: Path to the image file.

    Returns:
        Tuple of (BGR image array, EXIF orientation tag).

    Raises:
        FileNotFoundError: If the image file does not exist.
        InvalidImageError: If the file cannot be decoded.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(str(path), cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION)
    if img is None:
        raise InvalidImageError(f"Failed to read image: {path}")

    return img, read_orientation(path)
