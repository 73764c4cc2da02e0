"""
Grid Models
===========

Spatial extents used by the estimation engine.

    - CropRect: region of interest inside the full video frame
    - OutputGrid: coarse (nx, ny) lattice at which velocity and mask
      are reported

The grid always downsamples the crop, never upsamples it.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from fishflow.errors import InvalidConfigurationError


@dataclass(frozen=True, slots=True)
class CropRect:
    """
    Region of interest within full video frames.

    Attributes:
        xmin: Left edge (pixels)
        ymin: Top edge (pixels)
        width: Width of the region (pixels)
        height: Height of the region (pixels)
    """

    xmin: int
    ymin: int
    width: int
    height: int

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.xmin < 0 or self.ymin < 0:
            raise InvalidConfigurationError("crop origin must be non-negative")
        if self.width <= 0 or self.height <= 0:
            raise InvalidConfigurationError("crop width and height must be positive")

    @property
    def xmax(self) -> int:
        return self.xmin + self.width

    @property
    def ymax(self) -> int:
        return self.ymin + self.height

    @property
    def shape(self) -> Tuple[int, int]:
        """Array shape (height, width) of a cropped frame."""
        return (self.height, self.width)

    def apply(self, frame: np.ndarray) -> np.ndarray:
        """Return the cropped view of a full frame."""
        return frame[self.ymin:self.ymax, self.xmin:self.xmax]


@dataclass(frozen=True, slots=True)
class OutputGrid:
    """
    Coarse output lattice.

    Attributes:
        nx: Number of horizontal grid cells
        ny: Number of vertical grid cells
    """

    nx: int
    ny: int

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.nx <= 0 or self.ny <= 0:
            raise InvalidConfigurationError(
                f"Output grid must be non-empty. Got: {self.nx}x{self.ny}"
            )

    @property
    def shape(self) -> Tuple[int, int]:
        """Array shape (ny, nx) of grid-resolution outputs."""
        return (self.ny, self.nx)

    def check_fits(self, height: int, width: int) -> None:
        """
        Ensure the grid downsamples a (height, width) frame.

        Raises:
            InvalidConfigurationError: If the grid is finer than the frame
        """
        if width < self.nx or height < self.ny:
            raise InvalidConfigurationError(
                f"Output grid {self.nx}x{self.ny} is larger than "
                f"crop {width}x{height}"
            )

    def sample_points(self, height: int, width: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Full-resolution pixel sampled for every grid cell.

        Cell (i, j) maps to the pixel nearest its centre:
        row = round(H * (i + 0.5) / ny), col = round(W * (j + 0.5) / nx),
        rounding halves up and clamping to the last row/column.

        Args:
            height: Full-resolution height H
            width: Full-resolution width W

        Returns:
            (rows, cols) integer index arrays of shapes (ny,) and (nx,)
        """
        rows = np.floor(height * (np.arange(self.ny) + 0.5) / self.ny + 0.5)
        cols = np.floor(width * (np.arange(self.nx) + 0.5) / self.nx + 0.5)
        rows = np.minimum(rows.astype(np.intp), height - 1)
        cols = np.minimum(cols.astype(np.intp), width - 1)
        return rows, cols
