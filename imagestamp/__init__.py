"""
Text label and watermark stamping for numpy-backed images.

    from imagestamp import LabelOptions, label, load
    out = label(load("photo.jpg"), LabelOptions(text="Hello", font="sans 24"))
"""
from .models.errors import (AllocationError, CompositingError, ErrorKind,
                            GeometryError, RasterizationError)
from .models.image import Image, Interpretation
from .models.options import (Align, BlurOptions, Color, LabelOptions, ResizeMode,
                             ResizeOptions, Scalar, WatermarkOptions)
from .pipeline.blur import blur
from .pipeline.label import label
from .pipeline.resize import resize
from .pipeline.watermark import watermark
from .repositories.image_repository import ImageRepository
from .services.text_service import TextService

__version__ = "1.0.0"

load = ImageRepository.load
save = ImageRepository.save


def render_text(text, font=None, width=100, height=None, align=Align.LEFT, dpi=None, **kwargs) -> Image:
    """Module-level shortcut for TextService().render_text()."""
    service = TextService()
    if font is not None:
        kwargs["font"] = font
    if dpi is not None:
        kwargs["dpi"] = dpi
    return service.render_text(text, width=width, height=height, align=align, **kwargs)


__all__ = [
    "AllocationError", "Align", "BlurOptions", "Color", "CompositingError",
    "ErrorKind", "GeometryError", "Image", "Interpretation", "LabelOptions",
    "RasterizationError", "ResizeMode", "ResizeOptions", "Scalar",
    "WatermarkOptions", "blur", "label", "load", "render_text", "resize",
    "save", "watermark",
]
