from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple, Union
import logging
import math

import numpy as np
from PIL import Image as PILImage, ImageDraw

from .. import config
from ..models.errors import RasterizationError
from ..models.font_engine import FontDescriptor, FontEngine
from ..models.image import Image, Interpretation
from ..models.options import Align
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


@dataclass
class _Line:
    words: List[str]
    width: float
    paragraph_end: bool


class TextService:
    """
    Text -> coverage mask.

    Wraps and aligns text with Pillow; glyph shaping itself is entirely
    FreeType's business.
    """

    def __init__(self):
        self.font_engine = FontEngine()
        self.image_repository = ImageRepository()

    # ---------- public API ----------
    def render_text(
        self,
        text: Union[str, bytes],
        font: str = config.DEFAULT_FONT,
        width: int = 100,
        height: int | None = None,
        align: Align = Align.LEFT,
        dpi: int = config.DEFAULT_DPI,
        *,
        rgba: bool = False,
        justify: bool = False,
        spacing: int = 0,
    ) -> Image:
        """
        Rasterize `text` into a mask no larger than width x height.

        Args:
            text: str, or UTF-8 bytes.
            font: Pango-style descriptor, e.g. "sans 10" or "/path/Font.ttf 24".
            width: wrap width in pixels.
            height: when set, the font size is fitted so the text fits the box.
            align: per-line alignment (ignored for justified lines).
            dpi: resolution used to turn the point size into pixels.
            rgba: return 4 bands (coverage in every band) instead of 1.
            justify: stretch every line but a paragraph's last to the layout width.
            spacing: extra pixels between lines.

        Returns:
            Image: uint8 coverage, B_W (1 band) or SRGB (4 bands).
        """
        text = self._decode(text)
        if not text.strip():
            raise RasterizationError("no text to render")
        if width <= 0:
            raise RasterizationError(f"text width must be positive, got {width}")
        if height is not None and height <= 0:
            raise RasterizationError(f"text height must be positive, got {height}")
        if dpi <= 0:
            raise RasterizationError(f"dpi must be positive, got {dpi}")

        descriptor = FontDescriptor.parse(font)
        if height is None:
            face = self._load(descriptor, descriptor.pixel_size(dpi))
            lines, _ = self._wrap(text, face, width)
        else:
            face, lines = self._fit(text, descriptor, width, height, spacing)

        coverage = self._draw(lines, face, width, height, align, justify, spacing)
        if rgba:
            return self.image_repository.create_image(
                np.dstack([coverage] * 4), Interpretation.SRGB)
        return self.image_repository.create_image(coverage, Interpretation.B_W)

    # ---------- private helpers ----------
    @staticmethod
    def _decode(text: Union[str, bytes]) -> str:
        try:
            if isinstance(text, bytes):
                return text.decode("utf-8")
            text.encode("utf-8")
        except UnicodeError as err:
            raise RasterizationError("text is not valid UTF-8", detail=str(err))
        return text

    def _load(self, descriptor: FontDescriptor, pixel_size: int):
        return self.font_engine.load(descriptor.family, pixel_size, is_file=descriptor.is_file)

    @staticmethod
    def _line_height(face) -> int:
        if hasattr(face, "getmetrics"):
            ascent, descent = face.getmetrics()
            return max(1, ascent + descent)
        return max(1, face.getbbox("Ag")[3])

    @staticmethod
    def _break_word(word: str, face, width: int) -> List[str]:
        pieces, chunk = [], ""
        for char in word:
            if chunk and face.getlength(chunk + char) > width:
                pieces.append(chunk)
                chunk = char
            else:
                chunk += char
        if chunk:
            pieces.append(chunk)
        return pieces

    def _wrap(self, text: str, face, width: int) -> Tuple[List[_Line], bool]:
        """Greedy word wrap. Also reports whether any word had to be split."""
        lines: List[_Line] = []
        broken = False
        for paragraph in text.split("\n"):
            current: List[str] = []
            for word in paragraph.split():
                pieces = [word]
                if face.getlength(word) > width:
                    pieces = self._break_word(word, face, width)
                    broken = True
                for piece in pieces:
                    if current and face.getlength(" ".join(current + [piece])) > width:
                        lines.append(_Line(current, face.getlength(" ".join(current)), False))
                        current = [piece]
                    else:
                        current.append(piece)
            lines.append(_Line(current, face.getlength(" ".join(current)) if current else 0.0, True))
        return lines, broken

    def _block_height(self, lines: List[_Line], face, spacing: int) -> int:
        return len(lines) * (self._line_height(face) + spacing) - spacing

    def _fit(self, text: str, descriptor: FontDescriptor, width: int, height: int, spacing: int):
        """Largest pixel size whose wrapped layout fits width x height."""
        lo, hi = 1, max(1, height)
        best = None
        while lo <= hi:
            size = (lo + hi) // 2
            face = self._load(descriptor, size)
            lines, broken = self._wrap(text, face, width)
            if not broken and self._block_height(lines, face, spacing) <= height:
                best = (face, lines)
                lo = size + 1
            else:
                hi = size - 1
        if best is None:
            logger.debug(f"Text does not fit {width}x{height} even at 1px; clipping")
            face = self._load(descriptor, 1)
            best = (face, self._wrap(text, face, width)[0])
        return best

    def _draw(self, lines: List[_Line], face, width: int, height: int | None,
              align: Align, justify: bool, spacing: int) -> np.ndarray:
        widest = max(line.width for line in lines)
        canvas_w = max(1, min(width, int(math.ceil(widest))))
        canvas_h = max(1, self._block_height(lines, face, spacing))
        if height is not None:
            canvas_h = min(canvas_h, height)
        step = self._line_height(face) + spacing

        canvas = PILImage.new("L", (canvas_w, canvas_h), 0)
        draw = ImageDraw.Draw(canvas)
        try:
            for i, line in enumerate(lines):
                if not line.words:
                    continue
                y = i * step
                if justify and not line.paragraph_end and len(line.words) > 1:
                    inked = sum(face.getlength(word) for word in line.words)
                    gap = (canvas_w - inked) / (len(line.words) - 1)
                    x = 0.0
                    for word in line.words:
                        draw.text((x, y), word, font=face, fill=255)
                        x += face.getlength(word) + gap
                    continue
                if align == Align.CENTRE:
                    x = (canvas_w - line.width) / 2.0
                elif align == Align.RIGHT:
                    x = canvas_w - line.width
                else:
                    x = 0
                draw.text((x, y), " ".join(line.words), font=face, fill=255)
        except (OSError, ValueError) as err:
            raise RasterizationError("text rasterization failed", detail=str(err))
        return np.array(canvas, dtype=np.uint8)
