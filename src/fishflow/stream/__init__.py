"""
Stream Module
=============

Frame input for the estimation engine.

Components:
    - open_video / probe_video: OpenCV capture and its properties
    - Background loading, defaulting and computation
    - VideoFrameSource: sliding (old, current) cropped frame pairs
"""

from fishflow.stream.background import (
    compute_background,
    default_background,
    load_background,
    save_background,
)
from fishflow.stream.source import VideoFrameSource
from fishflow.stream.video import VideoInfo, open_video, probe_video

__all__ = [
    # Video
    "VideoInfo",
    "open_video",
    "probe_video",
    # Background
    "default_background",
    "load_background",
    "compute_background",
    "save_background",
    # Pairs
    "VideoFrameSource",
]
