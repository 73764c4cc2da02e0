"""
FishFlow
========

Velocity and density fields from videos of fish schools.

This package estimates, for every pair of consecutive frames, a coarse
velocity field and an occupancy ("density") field against a static
background. Velocity comes from a windowed structure-tensor solve
(Lucas-Kanade style) sampled on a fixed output grid.

Components:
    - calc: Per-step estimation engine (density, mask, velocity)
    - models: Typed data passed between stages
    - stream: Video opening, cropping and frame pairing
    - output: Array store persistence
    - observability: Colormaps, arrow overlays and video rendering

Example:
    from fishflow.calc import FlowEngine
    from fishflow.models import OutputGrid

    engine = FlowEngine(OutputGrid(nx=128, ny=64), background)
    bundle = engine(old, current)
    print(bundle.velocity.vectors.shape)  # (64, 128, 2)
"""

__version__ = "0.2.0"
__author__ = "FishFlow Project"

__all__ = [
    "__version__",
]
