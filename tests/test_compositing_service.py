"""Colour fills, tiling and band conforming."""

import numpy as np
import pytest

from imagestamp.models.errors import GeometryError
from imagestamp.models.image import Image, Interpretation

from conftest import make_image


def test_color_fill_matches_like_image(compositing_service, small_rgb):
    fill = compositing_service.color_fill((10, 20, 30), small_rgb)
    assert fill.pixels.shape == (48, 64, 3)
    assert fill.interpretation == Interpretation.SRGB
    assert (fill.pixels == np.array([10, 20, 30], dtype=np.uint8)).all()
    assert not small_rgb.released


def test_color_fill_takes_interpretation_not_bands(compositing_service, grey_image):
    fill = compositing_service.color_fill((255, 0, 0, 255), grey_image)
    assert fill.pixels.shape == (90, 120, 4)
    assert fill.interpretation == Interpretation.B_W


def test_color_fill_rejects_odd_lengths(compositing_service, small_rgb):
    with pytest.raises(GeometryError):
        compositing_service.color_fill((1, 2), small_rgb)


@pytest.mark.parametrize("tile_size", [(7, 5), (64, 48), (100, 10), (1, 1), (13, 60)])
def test_replicate_to_cover(compositing_service, monkeypatch, tile_size):
    tile_w, tile_h = tile_size
    tile = make_image(tile_w, tile_h, bands=1, seed=tile_w * tile_h)
    target = make_image(64, 48)

    counts = []
    repo = compositing_service.image_repository
    real_replicate = repo.replicate

    def spy(image, across, down):
        counts.append((across, down))
        return real_replicate(image, across, down)

    monkeypatch.setattr(repo, "replicate", spy)
    out = compositing_service.replicate_to_cover(tile, target)

    assert counts == [(1 + 64 // tile_w, 1 + 48 // tile_h)]
    assert (out.width, out.height) == (64, 48)
    ys, xs = np.mgrid[0:48, 0:64]
    expected = tile.pixels[ys % tile_h, xs % tile_w]
    assert (out.pixels == expected).all()


def test_replicate_rejects_empty_tile(compositing_service, small_rgb):
    empty = Image(pixels=np.zeros((5, 0, 1), dtype=np.uint8), interpretation=Interpretation.B_W)
    with pytest.raises(GeometryError):
        compositing_service.replicate_to_cover(empty, small_rgb)


class TestConformFill:
    def test_same_band_count_is_unchanged(self, compositing_service, small_rgb):
        assert compositing_service.conform_fill(small_rgb, 3) is small_rgb

    def test_rgba_to_rgb(self, compositing_service, solid):
        out = compositing_service.conform_fill(solid(4, 4, [1, 2, 3, 255]), 3)
        assert out.pixels[0, 0].tolist() == [1, 2, 3]
        assert out.interpretation == Interpretation.SRGB

    def test_rgb_gains_opaque_alpha(self, compositing_service, solid):
        out = compositing_service.conform_fill(solid(4, 4, [1, 2, 3]), 4)
        assert out.pixels[0, 0].tolist() == [1, 2, 3, 255]

    def test_to_grey(self, compositing_service, solid):
        white = solid(4, 4, [255, 255, 255, 255])
        grey = compositing_service.conform_fill(white, 1)
        assert grey.bands == 1 and (grey.pixels == 255).all()
        grey_alpha = compositing_service.conform_fill(white, 2)
        assert grey_alpha.bands == 2
        assert grey_alpha.interpretation == Interpretation.B_W

    def test_unsupported(self, compositing_service, solid):
        with pytest.raises(GeometryError):
            compositing_service.conform_fill(solid(4, 4, [1, 2, 3]), 5)


class TestConformMask:
    def test_single_band_mask_is_broadcast_later(self, compositing_service, solid):
        mask = solid(4, 4, 9, Interpretation.B_W)
        assert compositing_service.conform_mask(mask, 3) is mask

    def test_rgba_mask_to_alpha(self, compositing_service, solid):
        out = compositing_service.conform_mask(solid(4, 4, [1, 2, 3, 4]), 1)
        assert out.bands == 1 and (out.pixels == 4).all()

    def test_rgba_mask_to_rgb(self, compositing_service, solid):
        out = compositing_service.conform_mask(solid(4, 4, [1, 2, 3, 4]), 3)
        assert out.pixels[0, 0].tolist() == [1, 2, 3]

    def test_rgba_mask_to_grey_alpha(self, compositing_service, solid):
        out = compositing_service.conform_mask(solid(4, 4, [1, 2, 3, 4]), 2)
        assert out.pixels[0, 0].tolist() == [3, 4]

    def test_unsupported(self, compositing_service, solid):
        with pytest.raises(GeometryError):
            compositing_service.conform_mask(solid(4, 4, [1, 2, 3]), 4)


def test_blend_paints_then_through_mask(compositing_service, solid, small_rgb):
    mask = solid(64, 48, 0, Interpretation.B_W)
    mask.pixels[10:20, 10:20] = 255
    red = solid(64, 48, [255, 0, 0])
    out = compositing_service.blend(mask, red, small_rgb)
    assert (out.pixels[10:20, 10:20] == [255, 0, 0]).all()
    assert (out.pixels[:10] == small_rgb.pixels[:10]).all()
