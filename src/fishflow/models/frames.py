"""
Frame Models
============

Frame pairs handed from the frame source to the estimation engine,
and the resolved range of frames of interest.
"""

from dataclasses import dataclass
from typing import List

import numpy as np


@dataclass(frozen=True, slots=True)
class FrameRange:
    """
    Resolved frames of interest (1-based, inclusive).

    Attributes:
        start: First frame used
        stop: Last frame allowed
        step: Stride between used frames
        count: Number of frames used
    """

    start: int
    stop: int
    step: int
    count: int

    @property
    def indices(self) -> List[int]:
        """1-based indices of every frame used."""
        return [self.start + k * self.step for k in range(self.count)]

    @property
    def pair_count(self) -> int:
        """Number of (old, current) estimation steps."""
        return max(self.count - 1, 0)


@dataclass(frozen=True, slots=True)
class FramePair:
    """
    Two temporally adjacent cropped frames.

    Owned by a single estimation step. Frames are BGR or grayscale
    uint8 arrays at crop resolution.

    Attributes:
        index: 0-based step number (slot in the array store)
        old: Earlier frame
        current: Later frame
    """

    index: int
    old: np.ndarray
    current: np.ndarray

    def __repr__(self) -> str:
        return f"FramePair(index={self.index}, shape={self.current.shape})"
