from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import logging
import os

from PIL import ImageFont

from .. import config
from .errors import RasterizationError

logger = logging.getLogger(__name__)

_FONT_EXTS = (".ttf", ".otf", ".ttc", ".pfb", ".woff", ".woff2")

# Generic family names -> files commonly shipped by fontconfig distributions
_FAMILY_FILES = {
    "sans": ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf"),
    "sans-serif": ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf"),
    "serif": ("DejaVuSerif.ttf", "LiberationSerif-Regular.ttf", "Times New Roman.ttf"),
    "mono": ("DejaVuSansMono.ttf", "LiberationMono-Regular.ttf", "Courier New.ttf"),
    "monospace": ("DejaVuSansMono.ttf", "LiberationMono-Regular.ttf", "Courier New.ttf"),
}


@dataclass(frozen=True)
class FontDescriptor:
    """Pango-style "<family or file> <size in points>"."""
    family: str
    size: float = 10.0

    @classmethod
    def parse(cls, descriptor: str) -> "FontDescriptor":
        parts = descriptor.strip().rsplit(None, 1)
        if not parts:
            raise RasterizationError("empty font descriptor")
        if len(parts) == 2:
            try:
                size = float(parts[1])
            except ValueError:
                return cls(family=descriptor.strip())
            if size <= 0:
                raise RasterizationError(f"font size must be positive, got {parts[1]}")
            return cls(family=parts[0].strip(), size=size)
        return cls(family=parts[0])

    @property
    def is_file(self) -> bool:
        return self.family.lower().endswith(_FONT_EXTS) or os.sep in self.family

    def pixel_size(self, dpi: int) -> int:
        return max(1, int(round(self.size * dpi / 72.0)))


class FontEngine:
    """
    Singleton wrapper around Pillow's FreeType loader.

    Resolves a family name once per (family, pixel size). Faces are kept in
    an LRU cache of config.FONT_CACHE_SIZE entries, so callers choosing
    arbitrary sizes cannot grow it without bound.
    """

    _instance: FontEngine | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init_engine()
        return cls._instance

    def _init_engine(self) -> None:
        self.font_dirs = [Path(d) for d in config.FONT_DIRS]
        self._cached_open = lru_cache(maxsize=config.FONT_CACHE_SIZE)(self._open)

    def load(self, family: str, pixel_size: int, *, is_file: bool = False):
        return self._cached_open(family, pixel_size, is_file)

    def cache_info(self):
        return self._cached_open.cache_info()

    def clear_cache(self) -> None:
        self._cached_open.cache_clear()

    def _open(self, family: str, pixel_size: int, is_file: bool):
        if is_file:
            return self._open_file(family, pixel_size)
        return self._open_family(family, pixel_size)

    @staticmethod
    def _open_file(path: str, pixel_size: int):
        try:
            return ImageFont.truetype(path, pixel_size)
        except OSError as err:
            raise RasterizationError(f"cannot load font file {path}", detail=str(err))

    def _candidates(self, family: str):
        names = list(_FAMILY_FILES.get(family.lower(), ()))
        names += [f"{family}.ttf", f"{family}.otf", family]
        for name in names:
            for font_dir in self.font_dirs:
                yield str(font_dir / name)
            yield name

    def _open_family(self, family: str, pixel_size: int):
        for candidate in self._candidates(family):
            try:
                return ImageFont.truetype(candidate, pixel_size)
            except OSError:
                continue
        logger.warning(f"Font family '{family}' not found, using Pillow's bundled font")
        return ImageFont.load_default(size=pixel_size)
