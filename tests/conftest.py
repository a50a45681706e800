"""Shared fixtures: synthetic images and fresh service objects.

Nothing here depends on system fonts; text tests use the generic "sans"
family, which resolves to an installed font or to Pillow's bundled one.
"""

import numpy as np
import pytest

from imagestamp.models.image import Image, Interpretation
from imagestamp.repositories.image_repository import ImageRepository
from imagestamp.services.compositing_service import CompositingService
from imagestamp.services.text_service import TextService


def make_image(width, height, bands=3, interpretation=None, seed=0):
    """Deterministic noise image of the given geometry."""
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, bands), dtype=np.uint8)
    return ImageRepository.create_image(pixels, interpretation)


@pytest.fixture
def repo():
    return ImageRepository()


@pytest.fixture
def text_service():
    return TextService()


@pytest.fixture
def compositing_service():
    return CompositingService()


@pytest.fixture
def rgb_800x600():
    """The 800x600 RGB source used by the end-to-end scenarios."""
    return make_image(800, 600, bands=3, seed=1)


@pytest.fixture
def small_rgb():
    return make_image(64, 48, bands=3, seed=2)


@pytest.fixture
def rgba_image():
    return make_image(120, 90, bands=4, seed=3)


@pytest.fixture
def grey_image():
    return make_image(120, 90, bands=1, seed=4)


@pytest.fixture
def solid():
    """Factory for constant-colour uint8 images."""
    def _solid(width, height, value, interpretation=Interpretation.SRGB):
        value = np.atleast_1d(np.asarray(value, dtype=np.uint8))
        pixels = np.broadcast_to(value, (height, width, value.size)).copy()
        return Image(pixels=pixels, interpretation=interpretation)
    return _solid
