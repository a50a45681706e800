from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union

from .. import config


class Align(str, Enum):
    """How each wrapped line sits inside the layout box."""
    LEFT = "left"
    CENTRE = "centre"
    RIGHT = "right"

    @classmethod
    def parse(cls, name: str) -> "Align":
        name = name.strip().lower()
        if name == "center":
            name = "centre"
        return cls(name)


@dataclass(frozen=True)
class Color:
    r: int = 0
    g: int = 0
    b: int = 0

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        """Parse `rrggbb` (an optional leading '#' is ignored)."""
        value = value.lstrip("#")
        if len(value) != 6:
            raise ValueError(f"colour must be six hex digits, got {value!r}")
        return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    def as_tuple(self) -> Tuple[int, int, int]:
        return self.r, self.g, self.b


@dataclass(frozen=True)
class Scalar:
    """
    A length in pixels, or a fraction of the source dimension when
    `relative` is set (Scalar(0.5, relative=True) on 800 px -> 400 px).
    """
    value: float
    relative: bool = False

    def resolve(self, base: int) -> int:
        if self.relative:
            return int(round(self.value * base))
        return int(round(self.value))


Length = Union[int, float, Scalar]


def resolve_length(length: Length, base: int) -> int:
    if isinstance(length, Scalar):
        return length.resolve(base)
    return int(round(length))


@dataclass
class LabelOptions:
    """
    Value-object for a text label stamped once at an offset.

    width defaults to the source image width. When height is set,
    the font size is fitted so the wrapped text fills at most width x height.
    opacity is not clamped; values outside [0, 1] over- or under-drive the blend.
    """
    text: str
    font: str = config.DEFAULT_FONT
    width: Length = field(default_factory=lambda: Scalar(1.0, relative=True))
    height: Length | None = None
    offset_x: Length = 0
    offset_y: Length = 0
    alignment: Align = Align.LEFT
    opacity: float = 1.0
    color: Color = field(default_factory=Color)
    dpi: int = config.DEFAULT_DPI


@dataclass
class WatermarkOptions:
    """
    Value-object for a rotated, tiled text watermark.

    rotate is clockwise degrees. margin pads the right and bottom of the
    rotated mask before tiling. The background colour is painted fully
    opaque; the mask alone controls how much of it shows.
    """
    text: str
    font: str = config.DEFAULT_FONT
    width: int = config.WATERMARK_WIDTH
    dpi: int = config.DEFAULT_DPI
    rotate: float = 0.0
    opacity: float = 1.0
    margin: int = config.WATERMARK_MARGIN
    no_replicate: bool = False
    background: Color = field(default_factory=Color)


class ResizeMode(str, Enum):
    LFIT = "lfit"    # largest size that fits inside the box, aspect kept
    MFIT = "mfit"    # smallest size that covers the box, aspect kept
    FILL = "fill"    # cover the box, then centre-crop to it
    PAD = "pad"      # fit inside the box, then centre on a box-sized canvas
    FIXED = "fixed"  # exactly the box, aspect ignored


@dataclass
class ResizeOptions:
    """
    Value-object for an OSS-style resize.

    width/height give the target box. When both are 0, long_side/short_side
    give it instead, matched to the source orientation. percent scales both
    axes and is only used when no box is given. With `limit` set, boxes
    larger than the source do not enlarge it (pad always scales).
    color is the pad background; None means white, or transparent for
    images with alpha.
    """
    width: int = 0
    height: int = 0
    mode: ResizeMode = ResizeMode.LFIT
    limit: bool = True
    long_side: int = 0
    short_side: int = 0
    percent: int = 0
    color: Color | None = None


@dataclass
class BlurOptions:
    radius: int
    sigma: float
