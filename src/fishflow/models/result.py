"""
Result Models
=============

Per-step outputs of the estimation engine.

    - VelocityField: grid velocity vectors plus per-cell solve status
    - AlignmentMode: which alignment strategy produced the alignment slot
    - ResultBundle: everything one estimation step hands to persistence
      and rendering

Each ResultBundle owns its arrays; consecutive steps never share buffers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class VelocityField(BaseModel):
    """
    Velocity estimated on the output grid.

    Attributes:
        vectors: (ny, nx, 2) float32 array, [..., 0] = x, [..., 1] = y,
            already multiplied by the configured scale
        solved: (ny, nx) bool array, False where the local structure
            tensor was singular and the vector was set to zero
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    vectors: np.ndarray = Field(
        ...,
        description="Scaled velocity (ny, nx, 2) array",
    )

    solved: np.ndarray = Field(
        ...,
        description="Well-conditioned solve flag (ny, nx) array",
    )

    @property
    def vx(self) -> np.ndarray:
        return self.vectors[..., 0]

    @property
    def vy(self) -> np.ndarray:
        return self.vectors[..., 1]

    @property
    def magnitude(self) -> np.ndarray:
        """Velocity magnitude at each grid cell."""
        return np.sqrt(self.vx ** 2 + self.vy ** 2)

    @property
    def angle(self) -> np.ndarray:
        """Velocity angle at each grid cell (radians)."""
        return np.arctan2(self.vy, self.vx)


class AlignmentMode(str, Enum):
    """Alignment strategies. Only the no-op strategy exists."""

    NONE = "none"


@dataclass(frozen=True, slots=True)
class ResultBundle:
    """
    Output of one estimation step.

    Attributes:
        original: Copy of the current cropped frame (as supplied)
        density: (H, W) uint8 occupancy intensity, higher = denser
        mask: (ny, nx) bool validity mask
        velocity: Grid velocity field
        alignment_mode: Strategy that filled the alignment slot
        alignment: Alignment output, None for AlignmentMode.NONE
    """

    original: np.ndarray
    density: np.ndarray
    mask: np.ndarray
    velocity: VelocityField
    alignment_mode: AlignmentMode = AlignmentMode.NONE
    alignment: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        ny, nx = self.mask.shape
        return (
            f"ResultBundle(frame={self.original.shape}, grid={nx}x{ny}, "
            f"valid={int(self.mask.sum())}, alignment={self.alignment_mode.value})"
        )
