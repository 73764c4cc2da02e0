"""
Array Store
===========

Persists grid-resolution results of every frame into a compressed
numpy archive (.npz).

Layout:
    velocity: (ny, nx, count) structured array with float32 fields x, y
    density:  (ny, nx, count) uint8, density map resized to the grid
    frames:   number of frames actually written

Arrays are preallocated for the whole run and trimmed to the frames
written when the store is closed, so an interrupted run still produces
a readable file.
"""

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from fishflow.errors import DimensionMismatchError
from fishflow.models.grid import OutputGrid
from fishflow.models.result import ResultBundle


logger = logging.getLogger(__name__)


VELOCITY_DTYPE = np.dtype([("x", np.float32), ("y", np.float32)])

STORE_SUFFIX = ".npz"


def output_path(configured: Optional[str], input_file: str) -> str:
    """
    Resolve the store path.

    An empty configured path derives the name from the input video
    (clip.avi -> clip.npz). Paths without the .npz suffix get it appended.
    """
    if not configured:
        return str(Path(input_file).with_suffix(STORE_SUFFIX))
    if Path(configured).suffix != STORE_SUFFIX:
        return configured + STORE_SUFFIX
    return configured


class ArrayStore:
    """
    Per-frame grid records written to a .npz archive.

    Example:
        with ArrayStore("clip.npz", grid, count=len(source)) as store:
            for pair in source:
                store.write(engine.process(pair))
    """

    def __init__(self, path: str, grid: OutputGrid, count: int) -> None:
        """
        Initialize store.

        Args:
            path: Destination .npz path
            grid: Output grid
            count: Number of frames to reserve
        """
        self.path = path
        self.grid = grid
        self.count = count

        self._velocity = np.zeros(grid.shape + (count,), dtype=VELOCITY_DTYPE)
        self._density = np.zeros(grid.shape + (count,), dtype=np.uint8)
        self._written = 0
        self._closed = False

        logger.info(f"ArrayStore initialized: {path} ({grid.nx}x{grid.ny}x{count})")

    @property
    def frames_written(self) -> int:
        return self._written

    def write(self, bundle: ResultBundle, index: Optional[int] = None) -> None:
        """
        Store one frame.

        Args:
            bundle: Result of one estimation step
            index: Frame slot, defaults to the next free slot

        Raises:
            IndexError: If the slot is outside the reserved range
            DimensionMismatchError: If the bundle grid differs from the store's
        """
        index = self._written if index is None else index
        if not 0 <= index < self.count:
            raise IndexError(f"Frame slot {index} outside [0, {self.count})")

        vectors = bundle.velocity.vectors
        if vectors.shape[:2] != self.grid.shape:
            raise DimensionMismatchError(
                f"Velocity grid {vectors.shape[:2]} does not match store grid {self.grid.shape}"
            )

        self._velocity["x"][..., index] = vectors[..., 0]
        self._velocity["y"][..., index] = vectors[..., 1]
        self._density[..., index] = cv2.resize(
            bundle.density, (self.grid.nx, self.grid.ny)
        )
        self._written = max(self._written, index + 1)

    def close(self) -> None:
        """Write the archive. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        n = self._written
        np.savez_compressed(
            self.path,
            velocity=self._velocity[..., :n],
            density=self._density[..., :n],
            frames=np.int64(n),
        )
        logger.info(f"Wrote {n} frames to {self.path}")

    def __enter__(self) -> "ArrayStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def load_store(path: str) -> dict:
    """Read an archive written by ArrayStore into a dict of arrays."""
    with np.load(path) as data:
        return {
            "velocity": data["velocity"],
            "density": data["density"],
            "frames": int(data["frames"]),
        }
