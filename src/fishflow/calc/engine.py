"""
Estimation Engine
=================

One estimation step per frame pair.

The engine holds the immutable background and the configured grid,
normalizes both frames against the background and assembles a fresh
ResultBundle:

    normalized = clip(frame - background + 255, 0, 255)

so pixels matching the background become 255 (illuminated) and darker
foreground stays dark.

Design Rules:
    - No state survives between calls; each bundle owns new arrays
    - The background is copied at construction and never modified
    - Input frames are never modified
"""

import logging
import time
from typing import Optional

import cv2
import numpy as np

from fishflow.calc.alignment import AlignmentStrategy, NoAlignment, create_alignment
from fishflow.calc.density import compute_density, compute_density_mask
from fishflow.calc.velocity import StructureTensorVelocityEstimator, VelocityEstimator
from fishflow.config import Settings
from fishflow.errors import DimensionMismatchError
from fishflow.models.frames import FramePair
from fishflow.models.grid import OutputGrid
from fishflow.models.result import ResultBundle


logger = logging.getLogger(__name__)


def to_gray(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR frame to grayscale; 2D frames pass through."""
    if frame.ndim == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return frame


class FlowEngine:
    """
    Per-frame-pair density and velocity estimation.

    Attributes:
        grid: Output grid
        background: (H, W) uint8 background reference

    Example:
        engine = FlowEngine(OutputGrid(nx=128, ny=64), background)
        for pair in source:
            bundle = engine.process(pair)
    """

    def __init__(
        self,
        grid: OutputGrid,
        background: np.ndarray,
        estimator: Optional[VelocityEstimator] = None,
        alignment: Optional[AlignmentStrategy] = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            grid: Output grid, no finer than the background
            background: Grayscale background at crop resolution.
                Non-uint8 arrays (e.g. a mean image) are rounded.
            estimator: Velocity backend, structure tensor by default
            alignment: Alignment strategy, no-op by default

        Raises:
            DimensionMismatchError: If background is not 2D
            InvalidConfigurationError: If the grid is finer than the crop
        """
        background = np.asarray(background)
        if background.ndim != 2:
            raise DimensionMismatchError(
                f"Background must be 2D grayscale. Got shape: {background.shape}"
            )
        if background.dtype != np.uint8:
            background = np.clip(np.rint(background), 0, 255).astype(np.uint8)

        grid.check_fits(*background.shape)

        self.grid = grid
        self._background = background.copy()
        self._background.setflags(write=False)
        self.estimator = estimator or StructureTensorVelocityEstimator()
        self.alignment = alignment or NoAlignment()

        logger.info(
            f"FlowEngine initialized: crop={background.shape[1]}x{background.shape[0]}, "
            f"grid={grid.nx}x{grid.ny}, alignment={self.alignment.mode.value}"
        )

    @classmethod
    def from_settings(cls, settings: Settings, background: np.ndarray) -> "FlowEngine":
        """Build an engine from loaded Settings."""
        grid = OutputGrid(nx=settings.output.width, ny=settings.output.height)
        estimator = StructureTensorVelocityEstimator(
            window_size=settings.calc.window_size,
            scale=settings.calc.scale,
            singular_tolerance=settings.calc.singular_tolerance,
        )
        alignment = create_alignment(settings.calc.alignment)
        return cls(grid, background, estimator=estimator, alignment=alignment)

    @property
    def background(self) -> np.ndarray:
        return self._background

    def normalize(self, frame: np.ndarray) -> np.ndarray:
        """
        Normalize a frame against the background.

        Args:
            frame: BGR or grayscale uint8 frame at crop resolution

        Returns:
            Grayscale uint8 frame, background pixels at 255

        Raises:
            DimensionMismatchError: If the frame size differs from the background
        """
        gray = to_gray(frame)
        if gray.shape != self._background.shape:
            raise DimensionMismatchError(
                f"Frame shape {gray.shape} does not match "
                f"background shape {self._background.shape}"
            )
        return cv2.addWeighted(gray, 1.0, self._background, -1.0, 255.0)

    def __call__(self, old: np.ndarray, current: np.ndarray) -> ResultBundle:
        """
        Run one estimation step.

        Args:
            old: Earlier cropped frame
            current: Later cropped frame

        Returns:
            Freshly allocated ResultBundle
        """
        start_time = time.time()

        old_norm = self.normalize(old)
        current_norm = self.normalize(current)

        density = compute_density(current_norm)
        mask = compute_density_mask(current_norm, self.grid)
        alignment = self.alignment.align(current_norm)
        velocity = self.estimator.compute(old_norm, current_norm, self.grid)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Estimation step took {elapsed_ms:.1f}ms")

        return ResultBundle(
            original=current.copy(),
            density=density,
            mask=mask,
            velocity=velocity,
            alignment_mode=self.alignment.mode,
            alignment=alignment,
        )

    def process(self, pair: FramePair) -> ResultBundle:
        """Run one estimation step on a FramePair."""
        return self(pair.old, pair.current)
