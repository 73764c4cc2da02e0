"""
Frame Alignment
===============

Extension point for sub-pixel alignment between frames.

Only the no-op strategy exists. The engine records which strategy ran
in ResultBundle.alignment_mode so the bundle says plainly that nothing
was computed.
"""

from typing import Optional, Protocol

import numpy as np

from fishflow.errors import InvalidConfigurationError
from fishflow.models.result import AlignmentMode


class AlignmentStrategy(Protocol):
    """Protocol for alignment strategies."""

    mode: AlignmentMode

    def align(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Compute alignment output for a normalized frame."""
        ...


class NoAlignment:
    """Alignment strategy that computes nothing."""

    mode = AlignmentMode.NONE

    def align(self, frame: np.ndarray) -> Optional[np.ndarray]:
        return None


def create_alignment(mode: AlignmentMode) -> AlignmentStrategy:
    """Build the alignment strategy for a configured mode."""
    if mode == AlignmentMode.NONE:
        return NoAlignment()
    raise InvalidConfigurationError(f"Unknown alignment mode: {mode}")
