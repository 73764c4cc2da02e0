"""
Frame Source
============

Sliding pairs of consecutive cropped frames from a video.

Frames start, start + step, ... are read; every pair shares one frame
with the next: old of pair N+1 is current of pair N.

Design Rules:
    - Frames are skipped with grab() rather than seeking, which is
      unreliable between keyframes
    - Frames are cropped and copied; nothing downstream sees the
      capture's buffers
"""

import logging
from typing import Iterator, Optional

import numpy as np

from fishflow.models.frames import FramePair, FrameRange
from fishflow.models.grid import CropRect


logger = logging.getLogger(__name__)


class VideoFrameSource:
    """
    Iterable of FramePair over a video.

    Attributes:
        crop: Region of interest
        frame_range: Frames of interest

    Example:
        source = VideoFrameSource(open_video(path), crop, frame_range)
        for pair in source:
            bundle = engine.process(pair)
    """

    def __init__(self, capture, crop: CropRect, frame_range: FrameRange) -> None:
        """
        Initialize frame source.

        Args:
            capture: Open cv2.VideoCapture (or anything with grab/read)
            crop: Resolved crop rectangle
            frame_range: Resolved frames of interest
        """
        self._capture = capture
        self.crop = crop
        self.frame_range = frame_range
        self._frames_read = 0

    def __len__(self) -> int:
        return self.frame_range.pair_count

    @property
    def frames_read(self) -> int:
        """Number of frames read so far."""
        return self._frames_read

    def _skip(self, n: int) -> None:
        for _ in range(n):
            self._capture.grab()

    def _read(self) -> Optional[np.ndarray]:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        self._frames_read += 1
        return self.crop.apply(frame).copy()

    def __iter__(self) -> Iterator[FramePair]:
        self._skip(self.frame_range.start - 1)

        old = self._read()
        if old is None:
            logger.warning(f"Could not read frame {self.frame_range.start}")
            return

        for index in range(self.frame_range.pair_count):
            self._skip(self.frame_range.step - 1)
            current = self._read()
            if current is None:
                logger.warning(
                    f"Video ended early after {self._frames_read} frames "
                    f"({index} of {self.frame_range.pair_count} pairs)"
                )
                return

            yield FramePair(index=index, old=old, current=current)
            old = current

    def close(self) -> None:
        """Release the underlying capture."""
        self._capture.release()
