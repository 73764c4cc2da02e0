"""
Velocity Tests
==============

Structure-tensor velocity: shapes, zero motion, singular cells,
known translations, scale linearity and window sensitivity.
"""

import numpy as np
import pytest

from fishflow.calc.velocity import StructureTensorVelocityEstimator, force_odd
from fishflow.errors import DimensionMismatchError, InvalidConfigurationError
from fishflow.models.grid import OutputGrid


# Sobel is unnormalized: one pixel of motion reads as scale / 8
PIXEL = 100.0 / 8


class TestEstimatorSetup:
    """Tests for estimator construction."""

    @pytest.mark.parametrize("given,expected", [(1, 1), (44, 45), (45, 45), (2, 3)])
    def test_window_forced_odd(self, given, expected):
        assert force_odd(given) == expected
        assert StructureTensorVelocityEstimator(window_size=given).window_size == expected

    def test_window_must_be_positive(self):
        with pytest.raises(InvalidConfigurationError):
            StructureTensorVelocityEstimator(window_size=0)


class TestVelocityShapes:
    """Output shape depends only on the grid."""

    @pytest.mark.parametrize("shape", [(64, 128), (100, 300), (241, 517)])
    def test_shape_matches_grid(self, make_texture, shape):
        grid = OutputGrid(nx=16, ny=8)
        frame = make_texture(shape)

        field = StructureTensorVelocityEstimator(window_size=15).compute(frame, frame, grid)

        assert field.vectors.shape == (8, 16, 2)
        assert field.vectors.dtype == np.float32
        assert field.solved.shape == (8, 16)

    def test_mismatched_frames_rejected(self, make_texture):
        estimator = StructureTensorVelocityEstimator()
        with pytest.raises(DimensionMismatchError):
            estimator.compute(make_texture((64, 64)), make_texture((64, 65)), OutputGrid(4, 4))

    def test_color_frames_rejected(self):
        estimator = StructureTensorVelocityEstimator()
        frame = np.zeros((64, 64, 3), dtype=np.uint8)
        with pytest.raises(DimensionMismatchError):
            estimator.compute(frame, frame, OutputGrid(4, 4))


class TestZeroMotion:
    """Identical frames give zero velocity."""

    def test_textured_identical_frames(self, make_texture):
        frame = make_texture()
        field = StructureTensorVelocityEstimator().compute(frame, frame, OutputGrid(8, 8))

        assert field.solved.all()
        assert np.all(field.vectors == 0)

    def test_uniform_frames_are_singular(self):
        """Textureless frames: every cell falls back to zero, unsolved."""
        frame = np.full((96, 96), 120, dtype=np.uint8)
        field = StructureTensorVelocityEstimator().compute(frame, frame, OutputGrid(8, 8))

        assert not field.solved.any()
        assert np.all(field.vectors == 0)
        assert np.all(np.isfinite(field.vectors))

    def test_uniform_frames_with_brightness_change(self):
        """It != 0 but M == 0: still the zero fallback, never NaN."""
        old = np.full((96, 96), 120, dtype=np.uint8)
        current = np.full((96, 96), 140, dtype=np.uint8)
        field = StructureTensorVelocityEstimator().compute(old, current, OutputGrid(8, 8))

        assert not field.solved.any()
        assert np.all(field.vectors == 0)

    def test_uniform_region_inside_textured_frame(self, make_texture):
        """Only cells whose window sees no texture are unsolved."""
        old = make_texture((192, 192))
        old[:, 96:] = 128.0
        current = make_texture((192, 192), shift=(1, 0))
        current[:, 96:] = 128.0

        field = StructureTensorVelocityEstimator(window_size=15).compute(
            old, current, OutputGrid(nx=8, ny=4)
        )

        assert field.solved[:, :3].all()
        assert not field.solved[:, 6:].any()
        assert np.all(field.vectors[:, 6:] == 0)

    def test_one_dimensional_texture_is_singular(self):
        """Stripes constrain only one direction (aperture problem)."""
        x = np.arange(128, dtype=np.float64)
        frame = np.tile(128 + 40 * np.sin(2 * np.pi * x / 32), (128, 1))

        field = StructureTensorVelocityEstimator(singular_tolerance=1e-6).compute(
            frame, frame, OutputGrid(4, 4)
        )

        assert not field.solved.any()


def ripple_stripes(ripple, shift=0.0, size=128, period=32):
    """
    Vertical stripes plus a faint horizontal ripple.

    det(M) / trace(M)**2 is close to (ripple / 40) ** 2, so the ripple
    amplitude places every cell on a chosen side of the singular cutoff.
    """
    y, x = np.mgrid[0:size, 0:size].astype(np.float64)
    k = 2 * np.pi / period
    return 128 + 40 * np.sin(k * (x - shift)) + ripple * np.sin(k * y)


class TestNearSingular:
    """Relative determinant cutoff at the default tolerance."""

    def test_below_cutoff_falls_back_to_zero(self):
        # (1e-4 / 40) ** 2 ~ 6e-12, well under 1e-9
        old = ripple_stripes(1e-4)
        current = ripple_stripes(1e-4, shift=1)

        estimator = StructureTensorVelocityEstimator()
        tensor = estimator.structure_tensor(old, current)
        field = estimator.compute(old, current, OutputGrid(4, 4))

        det = tensor["xx"] * tensor["yy"] - tensor["xy"] ** 2
        assert np.all(det[16:112, 16:112] > 0)
        assert not field.solved.any()
        assert np.all(field.vectors == 0)

    def test_above_cutoff_is_solved(self):
        # (1e-2 / 40) ** 2 ~ 6e-8, well over 1e-9
        old = ripple_stripes(1e-2)
        current = ripple_stripes(1e-2, shift=1)

        field = StructureTensorVelocityEstimator().compute(old, current, OutputGrid(4, 4))

        assert field.solved.all()
        assert np.all(np.isfinite(field.vectors))
        assert np.all(field.vx > 0)

    def test_tolerance_moves_cutoff(self):
        frame = ripple_stripes(1e-2)

        strict = StructureTensorVelocityEstimator(singular_tolerance=1e-6)
        loose = StructureTensorVelocityEstimator(singular_tolerance=1e-9)

        assert not strict.compute(frame, frame, OutputGrid(4, 4)).solved.any()
        assert loose.compute(frame, frame, OutputGrid(4, 4)).solved.all()


class TestKnownTranslation:
    """A shifted texture gives velocity along the shift."""

    # Interior cells of a 4x4 grid on 192x192 sample rows/cols 72 and 120
    INTERIOR = (slice(1, 3), slice(1, 3))

    def test_shift_right(self, make_texture):
        old = make_texture()
        current = make_texture(shift=(1, 0))

        field = StructureTensorVelocityEstimator().compute(old, current, OutputGrid(4, 4))
        vx = field.vx[self.INTERIOR]
        vy = field.vy[self.INTERIOR]

        assert field.solved.all()
        np.testing.assert_allclose(vx, PIXEL, rtol=0.1)
        assert np.all(np.abs(vy) < 1.0)

    def test_shift_up(self, make_texture):
        old = make_texture()
        current = make_texture(shift=(0, -1))

        field = StructureTensorVelocityEstimator().compute(old, current, OutputGrid(4, 4))
        vx = field.vx[self.INTERIOR]
        vy = field.vy[self.INTERIOR]

        np.testing.assert_allclose(vy, -PIXEL, rtol=0.1)
        assert np.all(np.abs(vx) < 1.0)

    def test_diagonal_shift_direction(self, make_texture):
        old = make_texture()
        current = make_texture(shift=(0.5, 0.5))

        field = StructureTensorVelocityEstimator().compute(old, current, OutputGrid(4, 4))
        angle = field.angle[self.INTERIOR]

        np.testing.assert_allclose(angle, np.pi / 4, atol=0.1)


class TestScaleLinearity:
    """Scale is applied after the solve."""

    def test_doubling_scale_doubles_velocity(self, make_texture):
        old = make_texture()
        current = make_texture(shift=(0.7, -0.3))
        grid = OutputGrid(8, 8)

        single = StructureTensorVelocityEstimator(scale=100).compute(old, current, grid)
        double = StructureTensorVelocityEstimator(scale=200).compute(old, current, grid)

        np.testing.assert_allclose(double.vectors, 2 * single.vectors, rtol=1e-6)

    def test_negative_scale_flips_direction(self, make_texture):
        old = make_texture()
        current = make_texture(shift=(1, 0))
        grid = OutputGrid(4, 4)

        forward = StructureTensorVelocityEstimator(scale=100).compute(old, current, grid)
        flipped = StructureTensorVelocityEstimator(scale=-100).compute(old, current, grid)

        np.testing.assert_allclose(flipped.vectors, -forward.vectors, rtol=1e-6)


class TestWindowSensitivity:
    """Larger windows spread a localized motion over more cells."""

    def test_motion_spreads_with_window(self, make_texture):
        old = make_texture((256, 256))
        current = old.copy()
        moved = make_texture((256, 256), shift=(1, 0))
        current[112:144, 112:144] = moved[112:144, 112:144]
        grid = OutputGrid(nx=32, ny=32)

        counts = []
        for window in (9, 21, 45):
            field = StructureTensorVelocityEstimator(window_size=window).compute(
                old, current, grid
            )
            counts.append(int(np.count_nonzero(np.abs(field.vectors).max(axis=-1))))

        assert counts == sorted(counts)
        assert counts[0] < counts[-1]

    def test_localized_motion_stays_local(self, make_texture):
        """Cells beyond the kernel reach see no motion at all."""
        old = make_texture((256, 256))
        current = old.copy()
        moved = make_texture((256, 256), shift=(1, 0))
        current[112:144, 112:144] = moved[112:144, 112:144]

        field = StructureTensorVelocityEstimator(window_size=9).compute(
            old, current, OutputGrid(nx=32, ny=32)
        )

        assert np.all(field.vectors[:10] == 0)
        assert np.any(field.vectors[14:18, 14:18] != 0)
