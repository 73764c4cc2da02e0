"""
Data Models
===========

Typed data passed between FishFlow stages.

Models:
    Grid:
        - CropRect: Region of interest within the video
        - OutputGrid: Coarse output lattice

    Frames:
        - FrameRange: Resolved frames of interest
        - FramePair: Two adjacent cropped frames

    Results:
        - VelocityField: Grid velocity and solve status
        - AlignmentMode: Alignment strategy tag
        - ResultBundle: Complete per-step output
"""

from fishflow.models.grid import CropRect, OutputGrid
from fishflow.models.frames import FramePair, FrameRange
from fishflow.models.result import AlignmentMode, ResultBundle, VelocityField

__all__ = [
    # Grid
    "CropRect",
    "OutputGrid",
    # Frames
    "FrameRange",
    "FramePair",
    # Results
    "VelocityField",
    "AlignmentMode",
    "ResultBundle",
]
