"""
Renderers
=========

Sinks for composed images: MJPG video files and a live window.
"""

import logging
from pathlib import Path
from typing import Tuple

import cv2

from fishflow.models.result import ResultBundle
from fishflow.observability.visualization import ArrowStyle, PlotType, compose


logger = logging.getLogger(__name__)


VIDEO_FPS = 30
VIDEO_SUFFIX = ".avi"

_QUIT_KEYS = (ord("q"), 27)


class VideoRenderer:
    """
    Writes one composed image per bundle to an .avi file.

    Attributes:
        path: Video path (.avi appended if missing)
        plot_type: Layers drawn
    """

    def __init__(
        self,
        path: str,
        plot_type: PlotType,
        frame_size: Tuple[int, int],
        style: ArrowStyle = ArrowStyle(),
    ) -> None:
        """
        Initialize renderer.

        Args:
            path: Output path
            plot_type: Layers to draw
            frame_size: (width, height) of the crop
            style: Arrow appearance
        """
        if Path(path).suffix != VIDEO_SUFFIX:
            path += VIDEO_SUFFIX

        self.path = path
        self.plot_type = plot_type
        self.style = style
        self._writer = cv2.VideoWriter(
            path, cv2.VideoWriter_fourcc(*"MJPG"), VIDEO_FPS, frame_size
        )
        if not self._writer.isOpened():
            raise OSError(f"Could not open video writer: {path}")

        logger.info(f"VideoRenderer writing {plot_type!r} to {path}")

    def write(self, bundle: ResultBundle) -> None:
        self._writer.write(compose(bundle, self.plot_type, self.style))

    def close(self) -> None:
        self._writer.release()


class LiveDisplay:
    """Shows composed images in an OpenCV window."""

    def __init__(
        self,
        plot_type: PlotType = PlotType.ORIGINAL | PlotType.VELOCITY | PlotType.USE_MASK,
        style: ArrowStyle = ArrowStyle(),
        window_name: str = "fishflow",
    ) -> None:
        self.plot_type = plot_type
        self.style = style
        self.window_name = window_name
        self._opened = False

    def write(self, bundle: ResultBundle) -> bool:
        """
        Display a bundle.

        Returns:
            False once the user pressed q or Esc
        """
        cv2.imshow(self.window_name, compose(bundle, self.plot_type, self.style))
        self._opened = True
        return (cv2.waitKey(1) & 0xFF) not in _QUIT_KEYS

    def close(self) -> None:
        if self._opened:
            cv2.destroyWindow(self.window_name)
            self._opened = False
