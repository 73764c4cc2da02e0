"""
Visualization Module
====================

Render ResultBundles as images.

Artifacts:
    - Density colormap (blue = sparse, red = dense), opaque or blended
      50/50 over the original frame
    - Velocity arrows at every other grid cell, optionally gated by the
      validity mask

Rendering is PURELY DESCRIPTIVE and never feeds back into estimation.
"""

import logging
import math
from dataclasses import dataclass
from enum import IntFlag
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from fishflow.models.result import ResultBundle


logger = logging.getLogger(__name__)


ARROW_COLOR = (0, 0, 255)


class PlotType(IntFlag):
    """Layers drawn into a composite image."""

    ORIGINAL = 1
    DENSITY = 2
    VELOCITY = 4
    USE_MASK = 8


# Config key -> layers
PLOT_KINDS: Dict[str, PlotType] = {
    "velocity": PlotType.VELOCITY,
    "density": PlotType.DENSITY,
    "velocity_original": PlotType.ORIGINAL | PlotType.VELOCITY | PlotType.USE_MASK,
    "density_original": PlotType.ORIGINAL | PlotType.DENSITY,
    "velocity_density": PlotType.VELOCITY | PlotType.DENSITY,
    "velocity_density_original": PlotType.VELOCITY | PlotType.DENSITY | PlotType.ORIGINAL,
}


@dataclass(frozen=True, slots=True)
class ArrowStyle:
    """Arrow appearance."""

    thickness: int = 2
    head_size: int = 4
    overlap: bool = True


def _colormap_entry(c: int) -> Tuple[int, int, int]:
    """BGR color of intensity c, an 8-segment blue -> red ramp."""
    maxval = 255
    segment = c * 8 // maxval
    if segment == 0:
        return (4 * c + maxval // 2, 0, 0)
    if segment in (1, 2):
        return (maxval, 4 * c - maxval // 2, 0)
    if segment in (3, 4):
        return (5 * maxval // 2 - 4 * c, maxval, 4 * c - 3 * maxval // 2)
    if segment in (5, 6):
        return (0, 7 * maxval // 2 - 4 * c, maxval)
    return (0, 0, 9 * maxval // 2 - 4 * c)


COLORMAP = np.array([_colormap_entry(c) for c in range(256)], dtype=np.uint8)


def colorize(density: np.ndarray) -> np.ndarray:
    """Map a (H, W) uint8 density to a (H, W, 3) BGR image."""
    return COLORMAP[density]


def as_bgr(frame: np.ndarray) -> np.ndarray:
    """Return a BGR copy of a grayscale or BGR frame."""
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    return frame.copy()


def plot_density(frame: np.ndarray, density: np.ndarray, transparent: bool) -> np.ndarray:
    """
    Draw the density colormap.

    Args:
        frame: (H, W, 3) BGR image
        density: (H, W) uint8 density map
        transparent: Blend 50/50 with frame instead of replacing it

    Returns:
        New BGR image
    """
    colored = colorize(density)
    if transparent:
        return cv2.addWeighted(frame, 0.5, colored, 0.5, 0)
    return colored.copy()


def draw_arrow(
    frame: np.ndarray,
    p1: Tuple[int, int],
    p2: Tuple[int, int],
    style: ArrowStyle,
) -> None:
    """Draw an arrow from p1 to p2 in place, head strokes at +-45 degrees."""
    cv2.line(frame, p1, p2, ARROW_COLOR, style.thickness, cv2.LINE_AA)
    theta = math.atan2(p2[1] - p1[1], p2[0] - p1[0])
    for side in (math.pi / 4, -math.pi / 4):
        head = (
            p2[0] - int(round(style.head_size * math.cos(theta + side))),
            p2[1] - int(round(style.head_size * math.sin(theta + side))),
        )
        cv2.line(frame, head, p2, ARROW_COLOR, style.thickness, cv2.LINE_AA)


def plot_velocity(
    frame: np.ndarray,
    vectors: np.ndarray,
    mask: Optional[np.ndarray] = None,
    style: ArrowStyle = ArrowStyle(),
) -> np.ndarray:
    """
    Draw velocity arrows in place at every other grid cell.

    Cells (2i+1, 2j+1) are drawn, anchored at their position scaled to
    the frame. Without overlap, arrows are clamped to one grid step.

    Args:
        frame: (H, W, 3) BGR image
        vectors: (ny, nx, 2) velocity
        mask: Optional (ny, nx) bool; False cells are skipped
        style: Arrow appearance

    Returns:
        The same frame
    """
    height, width = frame.shape[:2]
    ny, nx = vectors.shape[:2]
    nx -= nx % 2
    ny -= ny % 2
    if nx == 0 or ny == 0:
        return frame

    dx = width // nx
    dy = height // ny
    for i in range(1, ny, 2):
        for j in range(1, nx, 2):
            if mask is not None and not mask[i, j]:
                continue
            p1 = (width * j // nx, height * i // ny)
            vx = int(round(float(vectors[i, j, 0])))
            vy = int(round(float(vectors[i, j, 1])))
            if not style.overlap:
                vx = min(max(vx, -dx), dx)
                vy = min(max(vy, -dy), dy)
            draw_arrow(frame, p1, (p1[0] + vx, p1[1] + vy), style)
    return frame


def compose(
    bundle: ResultBundle,
    plot_type: PlotType,
    style: ArrowStyle = ArrowStyle(),
) -> np.ndarray:
    """
    Render one bundle.

    Args:
        bundle: Estimation result
        plot_type: Layers to draw
        style: Arrow appearance

    Returns:
        (H, W, 3) BGR image at crop resolution
    """
    transparent = bool(plot_type & PlotType.ORIGINAL)
    if transparent:
        composite = as_bgr(bundle.original)
    else:
        composite = np.zeros(bundle.density.shape + (3,), dtype=np.uint8)

    if plot_type & PlotType.DENSITY:
        composite = plot_density(composite, bundle.density, transparent)

    if plot_type & PlotType.VELOCITY:
        mask = bundle.mask if plot_type & PlotType.USE_MASK else None
        plot_velocity(composite, bundle.velocity.vectors, mask, style)

    return composite
