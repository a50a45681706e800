from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import numpy as np


class Interpretation(str, Enum):
    B_W = "b-w"              # greyscale, optionally + alpha
    SRGB = "srgb"            # RGB, optionally + alpha
    MULTIBAND = "multiband"  # untagged bands (fresh black images)


@dataclass
class Image:
    """
    Simple data object: pixels (+ optional source path for bookkeeping).
    No OpenCV logic outside the repositories.
    """
    pixels: np.ndarray | None  # Shape (H, W, bands), RGB(A) order when SRGB.
    interpretation: Interpretation = Interpretation.SRGB
    path: Path | None = None  # Source of the image.
    released: bool = field(default=False, compare=False)

    @property
    def width(self) -> int:
        return int(self.live_pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.live_pixels.shape[0])

    @property
    def bands(self) -> int:
        return int(self.live_pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        if self.interpretation == Interpretation.B_W:
            return self.bands == 2
        if self.interpretation == Interpretation.SRGB:
            return self.bands == 4
        return False

    @property
    def live_pixels(self) -> np.ndarray:
        if self.released or self.pixels is None:
            raise ValueError("image has been released")
        return self.pixels

    def release(self) -> None:
        """Drop the pixel buffer. An image is released exactly once."""
        if self.released:
            raise RuntimeError("image released twice")
        self.pixels = None
        self.released = True
