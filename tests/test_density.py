"""
Density Tests
=============

Density map and validity mask from normalized frames.
"""

import numpy as np

from fishflow.calc.density import compute_density, compute_density_mask
from fishflow.models.grid import OutputGrid


def half_occupied(shape=(128, 256)):
    """Background (255) on the left half, occupied (0) on the right half."""
    frame = np.full(shape, 255, dtype=np.uint8)
    frame[:, shape[1] // 2:] = 0
    return frame


class TestDensity:
    """Tests for compute_density."""

    def test_empty_background_has_zero_density(self):
        frame = np.full((64, 96), 255, dtype=np.uint8)
        density = compute_density(frame)

        assert density.shape == frame.shape
        assert density.dtype == np.uint8
        assert density.max() == 0

    def test_fully_occupied_saturates(self):
        density = compute_density(np.zeros((64, 96), dtype=np.uint8))
        assert density.min() == 255

    def test_cutoff_is_strict(self):
        """Pixels at exactly 200 count as occupied."""
        at_cutoff = compute_density(np.full((32, 32), 200, dtype=np.uint8))
        above = compute_density(np.full((32, 32), 201, dtype=np.uint8))

        assert at_cutoff.min() == 255
        assert above.max() == 0

    def test_density_higher_on_occupied_side(self):
        density = compute_density(half_occupied())
        assert density[:, -1].mean() > density[:, 0].mean()

    def test_frame_not_modified(self):
        frame = half_occupied()
        before = frame.copy()
        compute_density(frame)
        np.testing.assert_array_equal(frame, before)


class TestDensityMask:
    """Tests for compute_density_mask."""

    def test_mask_has_grid_shape(self):
        grid = OutputGrid(nx=16, ny=8)
        mask = compute_density_mask(half_occupied(), grid)

        assert mask.shape == (8, 16)
        assert mask.dtype == bool

    def test_empty_region_is_invalid(self):
        mask = compute_density_mask(np.full((128, 256), 255, dtype=np.uint8), OutputGrid(16, 8))
        assert not mask.any()

    def test_occupied_region_is_valid(self):
        mask = compute_density_mask(np.zeros((128, 256), dtype=np.uint8), OutputGrid(16, 8))
        assert mask.all()

    def test_mask_follows_occupancy(self):
        """Cells well inside each half take that half's value."""
        mask = compute_density_mask(half_occupied(), OutputGrid(nx=16, ny=8))

        assert not mask[:, :6].any()
        assert mask[:, 8:].all()

    def test_erosion_grows_occupied_region(self):
        """
        Eroding the white background grows occupancy.

        Ten passes of the 5x5 disk extend occupied regions by 20 px.
        """
        grid = OutputGrid(nx=256, ny=128)
        mask = compute_density_mask(half_occupied(), grid)

        assert mask[64, 128 - 20]
        assert not mask[64, 128 - 21]

    def test_single_noisy_pixel_validates_octagon(self):
        """One dark pixel grows to the 10-fold disk: a 41x41 octagon."""
        frame = np.full((128, 128), 255, dtype=np.uint8)
        frame[64, 64] = 0

        mask = compute_density_mask(frame, OutputGrid(nx=128, ny=128))

        assert mask.sum() == 1461
        assert mask[64, 44] and mask[64, 84]
        assert mask[44, 64] and mask[84, 64]
        assert not mask[64, 43] and not mask[64, 85]
        # corners of the bounding square are cut off
        assert not mask[44, 44] and not mask[84, 84]
        assert mask[54, 44] and mask[44, 54]
