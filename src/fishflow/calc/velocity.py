"""
Velocity Estimation
===================

Grid velocity from two frames with a windowed structure-tensor solve.

This is the local, per-cell form of Lucas-Kanade optical flow:

    1. It = current - old
    2. Ix, Iy = Sobel(old) (first order, 3x3, unnormalized)
    3. Products Ix*Ix, Iy*Iy, Ix*Iy, Ix*It, Iy*It
    4. Each product smoothed by a window_size x window_size Gaussian
    5. Each grid cell samples the pixel at its centre
    6. Solve [[IxIx, IxIy], [IxIy, IyIy]] v = -[IxIt, IyIt]
    7. Store scale * v

Smoothing happens BEFORE sampling; the Gaussian is what aggregates each
cell's neighbourhood. Replacing it with a per-cell box average changes
the numbers.

Because the Sobel operator is not normalized, a displacement of d pixels
per frame yields scale * d / 8.

Singular Tensors:
    Textureless regions give a singular 2x2 matrix. Such cells get the
    zero vector and solved=False. A cell is singular when
    trace <= 0 or det <= singular_tolerance * trace**2.
"""

import logging
from typing import Protocol

import cv2
import numpy as np

from fishflow.errors import DimensionMismatchError, InvalidConfigurationError
from fishflow.models.grid import OutputGrid
from fishflow.models.result import VelocityField


logger = logging.getLogger(__name__)


def force_odd(window_size: int) -> int:
    """Return window_size, incremented if even."""
    return window_size | 1


class VelocityEstimator(Protocol):
    """
    Protocol for grid velocity backends.

    Implementations compute one velocity vector per grid cell from two
    full-resolution grayscale frames.
    """

    def compute(
        self,
        old: np.ndarray,
        current: np.ndarray,
        grid: OutputGrid,
    ) -> VelocityField:
        """
        Compute grid velocity between two consecutive frames.

        Args:
            old: Earlier grayscale frame (H, W)
            current: Later grayscale frame (H, W)
            grid: Output grid

        Returns:
            VelocityField of shape (ny, nx, 2)
        """
        ...


class StructureTensorVelocityEstimator:
    """
    Windowed structure-tensor (Lucas-Kanade) velocity estimator.

    Attributes:
        window_size: Gaussian aggregation window, always odd
        scale: Factor applied to every solved vector
        singular_tolerance: Relative determinant cutoff for singular cells

    Example:
        estimator = StructureTensorVelocityEstimator(window_size=45, scale=100)
        field = estimator.compute(old, current, OutputGrid(nx=128, ny=64))
    """

    def __init__(
        self,
        window_size: int = 45,
        scale: float = 100.0,
        singular_tolerance: float = 1e-9,
    ) -> None:
        """
        Initialize estimator.

        Args:
            window_size: Spatial support of the Gaussian window.
                Even values are incremented.
            scale: Multiplier applied after the solve
            singular_tolerance: Cells with det(M) <= tol * trace(M)**2
                are treated as singular
        """
        if window_size < 1:
            raise InvalidConfigurationError("window_size must be >= 1")
        if singular_tolerance < 0:
            raise InvalidConfigurationError("singular_tolerance must be >= 0")

        self.window_size = force_odd(window_size)
        self.scale = scale
        self.singular_tolerance = singular_tolerance

        logger.info(
            f"StructureTensorVelocityEstimator initialized: "
            f"window={self.window_size}, scale={scale}"
        )

    def structure_tensor(self, old: np.ndarray, current: np.ndarray) -> dict:
        """
        Smoothed structure-tensor maps at full resolution.

        Returns:
            Dict of float64 (H, W) arrays keyed
            "xx", "yy", "xy", "xt", "yt"
        """
        old = np.asarray(old, dtype=np.float64)
        current = np.asarray(current, dtype=np.float64)

        it = current - old
        ix = cv2.Sobel(old, cv2.CV_64F, 1, 0)
        iy = cv2.Sobel(old, cv2.CV_64F, 0, 1)

        products = {
            "xx": ix * ix,
            "yy": iy * iy,
            "xy": ix * iy,
            "xt": ix * it,
            "yt": iy * it,
        }

        ksize = (self.window_size, self.window_size)
        return {
            name: cv2.GaussianBlur(product, ksize, 0, 0)
            for name, product in products.items()
        }

    def compute(
        self,
        old: np.ndarray,
        current: np.ndarray,
        grid: OutputGrid,
    ) -> VelocityField:
        """
        Estimate grid velocity.

        Args:
            old: Earlier grayscale frame (H, W)
            current: Later grayscale frame (H, W)
            grid: Output grid, no finer than the frames

        Returns:
            VelocityField with scaled vectors and solve flags

        Raises:
            DimensionMismatchError: If frames are not 2D or shapes differ
        """
        if old.ndim != 2 or current.ndim != 2:
            raise DimensionMismatchError(
                f"Frames must be 2D grayscale. Got shapes: "
                f"{old.shape}, {current.shape}"
            )

        if old.shape != current.shape:
            raise DimensionMismatchError(
                f"Frame shapes must match. Got: {old.shape} vs {current.shape}"
            )

        height, width = old.shape
        grid.check_fits(height, width)

        tensor = self.structure_tensor(old, current)

        rows, cols = grid.sample_points(height, width)
        cells = np.ix_(rows, cols)
        a = tensor["xx"][cells]
        b = tensor["xy"][cells]
        d = tensor["yy"][cells]
        rx = -tensor["xt"][cells]
        ry = -tensor["yt"][cells]

        trace = a + d
        det = a * d - b * b
        solved = (trace > 0) & (det > self.singular_tolerance * trace * trace)

        # Closed-form 2x2 inverse; singular cells divide by 1 and are zeroed
        safe_det = np.where(solved, det, 1.0)
        vx = np.where(solved, (d * rx - b * ry) / safe_det, 0.0)
        vy = np.where(solved, (a * ry - b * rx) / safe_det, 0.0)

        vectors = np.empty(grid.shape + (2,), dtype=np.float32)
        vectors[..., 0] = self.scale * vx
        vectors[..., 1] = self.scale * vy

        unsolved = int(solved.size - solved.sum())
        if unsolved:
            logger.debug(f"{unsolved} of {solved.size} cells singular, set to zero")

        return VelocityField(vectors=vectors, solved=solved)
