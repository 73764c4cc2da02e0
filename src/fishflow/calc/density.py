"""
Density Estimation
==================

Occupancy intensity and validity mask from a background-normalized frame.

After normalization the illuminated background is bright (255) and fish
are dark. Both operations binarize at the same fixed cutoff:

    - compute_density: threshold -> 101x101 Gaussian -> (255 - v) * 4
    - compute_density_mask: threshold -> erode (5x5 disk, 10 passes)
      -> invert -> nearest resize to the output grid

The mask thresholds the frame again rather than reusing the smoothed
density map.

Mask Growth:
    The erosion runs on the binarized frame, where background is 255.
    Eroding the background grows every occupied region by 20 px (two
    pixels per pass) before inversion, so a single dark pixel validates
    a 41x41 octagon of cells. The growth is intended: the velocity
    window (45 px by default) sees fish texture well beyond the fish
    outline, and those cells carry usable estimates.
"""

import logging

import cv2
import numpy as np

from fishflow.models.grid import OutputGrid


logger = logging.getLogger(__name__)


# Normalized intensity above which a pixel is background
OCCUPANCY_CUTOFF = 200

DENSITY_KERNEL_SIZE = (101, 101)
DENSITY_GAIN = 4

MASK_EROSION_ITERATIONS = 10
MASK_DISK = np.array(
    [
        [0, 1, 1, 1, 0],
        [1, 1, 1, 1, 1],
        [1, 1, 1, 1, 1],
        [1, 1, 1, 1, 1],
        [0, 1, 1, 1, 0],
    ],
    dtype=np.uint8,
)


def binarize(frame: np.ndarray) -> np.ndarray:
    """
    Binarize a normalized frame.

    Returns:
        uint8 array, 255 for background pixels and 0 for occupied ones
    """
    _, binary = cv2.threshold(frame, OCCUPANCY_CUTOFF, 255, cv2.THRESH_BINARY)
    return binary


def compute_density(frame: np.ndarray) -> np.ndarray:
    """
    Compute the smoothed occupancy intensity of a normalized frame.

    Args:
        frame: Normalized grayscale frame (H, W), uint8

    Returns:
        Density map (H, W), uint8. 0 = empty background,
        255 = densely occupied (saturated)
    """
    blurred = cv2.GaussianBlur(binarize(frame), DENSITY_KERNEL_SIZE, 0, 0)
    density = (255 - blurred.astype(np.int32)) * DENSITY_GAIN
    return np.clip(density, 0, 255).astype(np.uint8)


def compute_density_mask(frame: np.ndarray, grid: OutputGrid) -> np.ndarray:
    """
    Decide per grid cell whether occupancy supports a velocity estimate.

    Args:
        frame: Normalized grayscale frame (H, W), uint8
        grid: Output grid

    Returns:
        Validity mask (ny, nx), bool
    """
    binary = binarize(frame)
    eroded = cv2.erode(
        binary, MASK_DISK, anchor=(-1, -1), iterations=MASK_EROSION_ITERATIONS
    )
    occupied = cv2.bitwise_not(eroded)
    small = cv2.resize(
        occupied, (grid.nx, grid.ny), interpolation=cv2.INTER_NEAREST
    )
    return small > 0
