"""
Video Capture
=============

Opening and probing input videos with OpenCV.

This is the ONLY place in the codebase that creates a VideoCapture.
"""

import logging
from dataclasses import dataclass

import cv2

from fishflow.errors import VideoOpenError


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VideoInfo:
    """
    Basic properties of an input video.

    Attributes:
        frame_count: Number of frames reported by the container
        width: Frame width in pixels
        height: Frame height in pixels
        fps: Declared frame rate
    """

    frame_count: int
    width: int
    height: int
    fps: float

    def __str__(self) -> str:
        return (
            f"{self.width}x{self.height}, {self.frame_count} frames "
            f"at {self.fps:.2f} fps"
        )


def open_video(path: str) -> cv2.VideoCapture:
    """
    Open a video file.

    Raises:
        VideoOpenError: If OpenCV cannot open the file
    """
    capture = cv2.VideoCapture(path)
    if not capture.isOpened():
        raise VideoOpenError(
            f"The input video '{path}' could not be open. Check the path, "
            f"read permissions and that the format is supported "
            f"(e.g. convert with: ffmpeg -i \"{path}\" video.avi)"
        )
    logger.info(f"Opened video: {path}")
    return capture


def probe_video(capture) -> VideoInfo:
    """Read frame count, size and fps from an open capture."""
    return VideoInfo(
        frame_count=int(capture.get(cv2.CAP_PROP_FRAME_COUNT)),
        width=int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
        height=int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        fps=float(capture.get(cv2.CAP_PROP_FPS)),
    )
