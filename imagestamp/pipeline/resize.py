# pipeline/resize.py
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import logging

from ..models.errors import CompositingError, GeometryError
from ..models.image import Image
from ..models.options import Color, ResizeMode, ResizeOptions
from ..repositories.image_arena import ImageArena
from ..repositories.image_repository import Extend, ImageRepository
from .stages import stage

logger = logging.getLogger(__name__)


@dataclass
class ResizePlan:
    width: int                                        # size after resampling
    height: int
    crop: Optional[Tuple[int, int, int, int]] = None  # left, top, width, height
    pad: Optional[Tuple[int, int, int, int]] = None   # x, y, canvas width, canvas height


def _either(a, b):
    """A zero dimension takes the other one's value."""
    if a == 0:
        return b, b
    if b == 0:
        return a, a
    return a, b


def _scaled(src_w: int, src_h: int, scale: float) -> Tuple[int, int]:
    return max(1, int(round(src_w * scale))), max(1, int(round(src_h * scale)))


def plan_resize(src_w: int, src_h: int, options: ResizeOptions) -> ResizePlan:
    """
    Work out the resample size and any crop / pad for a source of
    src_w x src_h. Pure arithmetic; no pixels are touched.
    """
    values = (options.width, options.height, options.long_side, options.short_side, options.percent)
    if any(v < 0 for v in values):
        raise GeometryError(f"resize: negative size in {values}")

    w, h = options.width, options.height
    long_side, short_side = options.long_side, options.short_side
    if not (w or h or long_side or short_side):
        if options.percent > 0:
            return ResizePlan(*_scaled(src_w, src_h, options.percent / 100.0))
        raise GeometryError("resize: width and height can not both be 0")

    mode = options.mode
    if mode == ResizeMode.MFIT:
        long_side, short_side = _either(long_side, short_side)
    if w == 0 and h == 0:
        if src_h < src_w:
            w, h = long_side, short_side
        else:
            w, h = short_side, long_side

    shrinks = 0 < w < src_w or 0 < h < src_h
    unchanged = ResizePlan(src_w, src_h)

    if mode == ResizeMode.PAD:
        w, h = _either(w, h)
        width, height = _scaled(src_w, src_h, min(w / src_w, h / src_h))
        return ResizePlan(width, height, pad=(int((w - width) / 2), int((h - height) / 2), w, h))

    if mode == ResizeMode.FILL:
        w, h = _either(w, h)
        if options.limit and not (w < src_w or h < src_h):
            return unchanged
        width, height = _scaled(src_w, src_h, max(w / src_w, h / src_h))
        crop_w, crop_h = min(w, width), min(h, height)
        return ResizePlan(width, height,
                          crop=((width - crop_w) // 2, (height - crop_h) // 2, crop_w, crop_h))

    if mode == ResizeMode.FIXED:
        if w > 0 and h > 0:
            if options.limit and not (w < src_w and h < src_h):
                return unchanged
            return ResizePlan(w, h)
        if options.limit and not shrinks:
            return unchanged
        return ResizePlan(*_scaled(src_w, src_h, min(_either(w / src_w, h / src_h))))

    if mode == ResizeMode.MFIT:
        if options.limit and not ((w > 0 or h > 0) and w < src_w and h < src_h):
            return unchanged
        return ResizePlan(*_scaled(src_w, src_h, max(w / src_w, h / src_h)))

    if options.limit and not shrinks:
        return unchanged
    return ResizePlan(*_scaled(src_w, src_h, min((w or src_w) / src_w, (h or src_h) / src_h)))


def pad_background(image: Image, color: Color | None) -> Sequence[float]:
    """Per-band canvas colour for pad mode."""
    if color is None:
        # white, or fully transparent when there is an alpha band
        return (0,) * image.bands if image.has_alpha else (255,) * image.bands
    r, g, b = color.as_tuple()
    values = [r, g, b] if image.bands >= 3 else [0.299 * r + 0.587 * g + 0.114 * b]
    if image.has_alpha:
        values.append(255)
    return values


def resize(
    image: Image,
    options: ResizeOptions,
    *,
    image_repository: ImageRepository = ImageRepository(),
) -> Image:
    """
    Resize *image* following the OSS resize modes (lfit, mfit, fill, pad,
    fixed). Returns a new Image; *image* is left untouched.
    """
    try:
        with ImageArena() as arena:
            with stage("plan", logger):
                plan = plan_resize(image.width, image.height, options)

            with stage("resize", logger):
                out = arena.track(image_repository.resize(image, plan.width, plan.height))

            if plan.crop is not None:
                with stage("crop", logger):
                    out = arena.track(image_repository.crop(out, *plan.crop))

            if plan.pad is not None:
                with stage("embed", logger):
                    x, y, width, height = plan.pad
                    out = arena.track(image_repository.embed(
                        out, x, y, width, height, extend=Extend.BACKGROUND,
                        background=pad_background(out, options.color)))

            logger.info(f"Resized {image.width}x{image.height} -> {out.width}x{out.height} "
                        f"({options.mode.value})")
            return arena.detach(out)
    except CompositingError as err:
        logger.error(f"Resize failed at stage {err.stage}: {err}")
        raise
