from __future__ import annotations
from typing import Sequence
import logging

from ..models.errors import GeometryError
from ..models.image import Image
from ..repositories.image_arena import ImageArena
from ..repositories.image_repository import Extend, ImageRepository

logger = logging.getLogger(__name__)


class CompositingService:
    """
    Business-level helpers shared by the label and watermark pipelines.

    Multi-step helpers keep their own scratch arena, so only the returned
    image outlives the call.
    """

    def __init__(self):
        self.image_repository = ImageRepository()

    def color_fill(self, color: Sequence[float], like: Image) -> Image:
        """
        Constant image of `like`'s size and interpretation.

        Built from a single pixel: black 1x1 -> offset to the colour -> uint8
        -> retag -> edge-extended to full size.
        """
        if len(color) not in (3, 4):
            raise GeometryError(f"fill colour needs 3 or 4 values, got {len(color)}")
        repo = self.image_repository
        with ImageArena() as arena:
            swatch = arena.track(repo.black(1, 1, bands=len(color)))
            swatch = arena.track(repo.linear(swatch, [1.0] * len(color), list(color)))
            swatch = arena.track(repo.cast_uchar(swatch))
            swatch = arena.track(repo.copy(swatch, interpretation=like.interpretation))
            return repo.embed(swatch, 0, 0, like.width, like.height, extend=Extend.COPY)

    def replicate_to_cover(self, tile: Image, target: Image) -> Image:
        """
        Tile `tile` with no gaps until it covers `target`, then crop to the
        target's exact size from (0, 0).
        """
        if tile.width == 0 or tile.height == 0:
            raise GeometryError(f"cannot tile a {tile.width}x{tile.height} image")
        across = 1 + target.width // tile.width
        down = 1 + target.height // tile.height
        logger.debug(f"Replicating {tile.width}x{tile.height} tile {across}x{down} times")
        with ImageArena() as arena:
            tiled = arena.track(self.image_repository.replicate(tile, across, down))
            return self.image_repository.crop(tiled, 0, 0, target.width, target.height)

    def conform_fill(self, fill: Image, bands: int) -> Image:
        """Bring a 3- or 4-band fill to `bands` bands (alpha added opaque)."""
        repo = self.image_repository
        if fill.bands == bands:
            return fill
        with ImageArena() as arena:
            if bands in (1, 2):
                grey = repo.to_grey(fill)
                if bands == 1:
                    return grey
                arena.track(grey)
                return repo.bandjoin_const(grey, 255)
            if bands == 3 and fill.bands == 4:
                rgb = arena.track(repo.extract_bands(fill, 0, 3))
                return repo.copy(rgb, interpretation=fill.interpretation)
            if bands == 4 and fill.bands == 3:
                return repo.bandjoin_const(fill, 255)
        raise GeometryError(f"cannot convert a {fill.bands}-band fill to {bands} bands")

    def conform_mask(self, mask: Image, bands: int) -> Image:
        """
        Bring an RGBA coverage mask to `bands` bands. Single-band masks and
        masks that already match are left for the blend to broadcast.
        """
        repo = self.image_repository
        if mask.bands in (1, bands):
            return mask
        if mask.bands == 4:
            if bands == 1:
                return repo.extract_bands(mask, 3, 1)
            if bands == 2:
                return repo.extract_bands(mask, 2, 2)
            if bands == 3:
                return repo.extract_bands(mask, 0, 3)
        raise GeometryError(f"cannot convert a {mask.bands}-band mask to {bands} bands")

    def blend(self, mask: Image, then: Image, otherwise: Image) -> Image:
        """Weighted ifthenelse: mask 0 keeps `otherwise`, 255 gives `then`."""
        return self.image_repository.ifthenelse(mask, then, otherwise)

