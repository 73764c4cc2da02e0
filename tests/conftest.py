"""
Test Configuration
==================

Pytest fixtures and test configuration for FishFlow.

All frames are synthetic numpy arrays; no video files are required.
"""

import numpy as np
import pytest


@pytest.fixture
def make_texture():
    """
    Provide a factory for smooth periodic textures.

    texture(shape, shift=(dx, dy)) samples
    128 + 40 sin(2 pi (x - dx) / P) + 40 sin(2 pi (y - dy) / P),
    so a shift of (dx, dy) moves the pattern by dx pixels right and
    dy pixels down.
    """
    def texture(shape=(192, 192), shift=(0.0, 0.0), period=32, dtype=np.float64):
        height, width = shape
        y, x = np.mgrid[0:height, 0:width].astype(np.float64)
        dx, dy = shift
        k = 2 * np.pi / period
        image = 128 + 40 * np.sin(k * (x - dx)) + 40 * np.sin(k * (y - dy))
        if dtype == np.uint8:
            return np.rint(image).astype(np.uint8)
        return image.astype(dtype)

    return texture


@pytest.fixture
def make_bundle():
    """Provide a factory for ResultBundles with constant fields."""
    from fishflow.models.result import ResultBundle, VelocityField

    def bundle(shape=(64, 128), grid=(8, 16), velocity=(0.0, 0.0), mask=True, density=0):
        ny, nx = grid
        vectors = np.zeros((ny, nx, 2), dtype=np.float32)
        vectors[..., 0] = velocity[0]
        vectors[..., 1] = velocity[1]
        return ResultBundle(
            original=np.full(shape + (3,), 90, dtype=np.uint8),
            density=np.full(shape, density, dtype=np.uint8),
            mask=np.full((ny, nx), mask, dtype=bool),
            velocity=VelocityField(vectors=vectors, solved=np.ones((ny, nx), dtype=bool)),
        )

    return bundle


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run in an empty directory without FISHFLOW_* environment variables."""
    import os

    for name in list(os.environ):
        if name.startswith("FISHFLOW_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path
