"""
Calc Module
===========

Per-step estimation engine.

This module provides:
    - Density map and validity mask computation
    - Structure-tensor (Lucas-Kanade) grid velocity
    - Alignment extension point (no-op)
    - FlowEngine tying them together into a ResultBundle

No I/O happens here.
"""

from fishflow.calc.alignment import AlignmentStrategy, NoAlignment, create_alignment
from fishflow.calc.density import compute_density, compute_density_mask
from fishflow.calc.engine import FlowEngine, to_gray
from fishflow.calc.velocity import (
    StructureTensorVelocityEstimator,
    VelocityEstimator,
    force_odd,
)

__all__ = [
    # Density
    "compute_density",
    "compute_density_mask",
    # Velocity
    "VelocityEstimator",
    "StructureTensorVelocityEstimator",
    "force_odd",
    # Alignment
    "AlignmentStrategy",
    "NoAlignment",
    "create_alignment",
    # Engine
    "FlowEngine",
    "to_gray",
]
