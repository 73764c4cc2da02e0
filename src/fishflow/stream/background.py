"""
Background Reference
====================

Static background image used to normalize every frame.

The background is either:
    - loaded from a grayscale image (full video size or crop size)
    - the uniform 255 field (no normalization effect)
    - computed as the mean grayscale image of the whole video
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from fishflow.errors import InvalidConfigurationError
from fishflow.models.grid import CropRect


logger = logging.getLogger(__name__)


def default_background(crop: CropRect) -> np.ndarray:
    """Uniform maximum-intensity background at crop resolution."""
    return np.full(crop.shape, 255, dtype=np.uint8)


def load_background(
    path: str,
    crop: CropRect,
    video_size: Tuple[int, int],
) -> np.ndarray:
    """
    Load a background image.

    Args:
        path: Image path
        crop: Resolved crop rectangle
        video_size: (width, height) of the full video frames

    Returns:
        (crop.height, crop.width) uint8 grayscale background

    Raises:
        InvalidConfigurationError: If the image cannot be read or its size
            matches neither the video nor the crop
    """
    image = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise InvalidConfigurationError(f"The background image '{path}' could not be open.")

    width, height = video_size
    if image.shape == (height, width):
        image = crop.apply(image)
    elif image.shape != crop.shape:
        raise InvalidConfigurationError(
            f"The background image size is incorrect: {image.shape[1]}x{image.shape[0]}. "
            f"It should either have the size of the input video ({width}x{height}) "
            f"or of the crop region ({crop.width}x{crop.height})."
        )

    logger.info(f"Loaded background: {path}")
    return np.ascontiguousarray(image)


def compute_background(capture, crop: CropRect) -> np.ndarray:
    """
    Mean grayscale image of every frame in the capture.

    The capture is rewound to the first frame afterwards.

    Args:
        capture: Open cv2.VideoCapture (or compatible)
        crop: Region to average

    Returns:
        (crop.height, crop.width) float32 mean image
    """
    background = np.zeros(crop.shape, dtype=np.float32)
    count = 0
    while True:
        ok, color = capture.read()
        if not ok:
            break
        gray = cv2.cvtColor(crop.apply(color), cv2.COLOR_BGR2GRAY)
        cv2.accumulate(gray, background)
        count += 1

    if count == 0:
        raise InvalidConfigurationError("Cannot compute a background from an empty video")

    background /= count
    capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
    logger.info(f"Computed background from {count} frames")
    return background


def save_background(path: str, background: np.ndarray) -> None:
    """Write a background image, rounding to uint8."""
    image = np.clip(np.rint(background), 0, 255).astype(np.uint8)
    if not cv2.imwrite(path, image):
        raise OSError(f"Could not write background image: {path}")
    logger.info(f"Wrote background: {path}")
