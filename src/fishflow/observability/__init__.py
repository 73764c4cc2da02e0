"""
Observability Module
====================

Rendering of estimation results.

This module provides:
    - compose: density / velocity layers into one BGR image
    - VideoRenderer: composed images to MJPG video
    - LiveDisplay: composed images to a window

DESIGN RULES:
    - Does NOT influence estimation
    - Only consumes ResultBundles
"""

from fishflow.observability.visualization import (
    ArrowStyle,
    COLORMAP,
    PLOT_KINDS,
    PlotType,
    colorize,
    compose,
    draw_arrow,
    plot_density,
    plot_velocity,
)
from fishflow.observability.render import LiveDisplay, VideoRenderer


__all__ = [
    "ArrowStyle",
    "COLORMAP",
    "PLOT_KINDS",
    "PlotType",
    "colorize",
    "compose",
    "draw_arrow",
    "plot_density",
    "plot_velocity",
    "LiveDisplay",
    "VideoRenderer",
]
