from __future__ import annotations
from enum import Enum
from functools import wraps
from io import BytesIO
from pathlib import Path
from typing import Sequence, Union
import math

import cv2
import numpy as np
from PIL import Image as PILImage

from ..models.errors import AllocationError, CompositingError, GeometryError
from ..models.image import Image, Interpretation


class Extend(str, Enum):
    BLACK = "black"            # zero-fill outside the placed image
    COPY = "copy"              # replicate edge pixels outward
    BACKGROUND = "background"  # constant per-band colour outside the placed image


def _library_errors(func):
    """Map OpenCV / numpy failures onto the CompositingError taxonomy."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CompositingError:
            raise
        except MemoryError as err:
            raise AllocationError(f"{func.__name__}: cannot allocate image", detail=str(err) or None)
        except (cv2.error, ValueError) as err:
            raise GeometryError(f"{func.__name__} failed", detail=str(err))
    return wrapper


def _bands_last(arr: np.ndarray) -> np.ndarray:
    # OpenCV drops the channel axis of single-band images
    return arr[:, :, np.newaxis] if arr.ndim == 2 else arr


def _default_interpretation(bands: int) -> Interpretation:
    if bands in (1, 2):
        return Interpretation.B_W
    if bands in (3, 4):
        return Interpretation.SRGB
    return Interpretation.MULTIBAND


class ImageRepository:
    """
    Pixel primitives and file I/O for Image entities.

    Every operation returns a *new* Image and never mutates its inputs.
    """

    @staticmethod
    def create_image(
        pixels: np.ndarray,
        interpretation: Interpretation | None = None,
        path: Union[str, Path] = None,
    ) -> Image:
        pixels = _bands_last(np.asarray(pixels))
        if interpretation is None:
            interpretation = _default_interpretation(pixels.shape[2])
        return Image(pixels=pixels, interpretation=interpretation,
                     path=Path(path) if path is not None else None)

    # ─── codec ───────────────────────────────────────────────────────
    @staticmethod
    def load(path: Union[str, Path]) -> Image:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        if arr.dtype != np.uint8:
            arr = cv2.convertScaleAbs(arr, alpha=255.0 / np.iinfo(arr.dtype).max)
        arr = _bands_last(arr)
        if arr.shape[2] == 3:
            arr = cv2.cvtColor(arr, cv2.COLOR_BGR2RGB)
        elif arr.shape[2] == 4:
            arr = cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        return ImageRepository.create_image(arr, path=path)

    @staticmethod
    def save(image: Image, quality: int = 90) -> None:
        if image.path is None:
            raise ValueError("image has no path to save to")
        pil = ImageRepository.to_pil(image)
        if image.path.suffix.lower() in (".jpg", ".jpeg"):
            pil.convert("RGB" if pil.mode in ("RGBA", "RGB") else "L").save(image.path, quality=quality)
        else:
            pil.save(image.path)

    @staticmethod
    def decode(data: bytes) -> tuple[Image, str]:
        """Bytes -> (Image, format name). Raises ValueError on garbage."""
        try:
            pil = PILImage.open(BytesIO(data))
            pil.load()
        except (OSError, PILImage.DecompressionBombError) as err:
            raise ValueError(f"cannot decode image: {err}") from err
        fmt = (pil.format or "png").lower()
        if pil.mode not in ("L", "LA", "RGB", "RGBA"):
            pil = pil.convert("RGBA" if "A" in pil.getbands() else "RGB")
        return ImageRepository.create_image(np.asarray(pil)), fmt

    @staticmethod
    def encode(image: Image, fmt: str = "png", quality: int = 90) -> bytes:
        fmt = fmt.lower()
        if fmt == "jpg":
            fmt = "jpeg"
        pil = ImageRepository.to_pil(image)
        buffer = BytesIO()
        grey = pil.mode in ("L", "LA")
        if fmt == "jpeg":
            pil.convert("L" if grey else "RGB").save(buffer, format="JPEG", quality=quality)
        elif fmt == "png":
            pil.save(buffer, format="PNG")
        elif fmt == "webp":
            pil.convert("RGBA" if "A" in pil.getbands() else "RGB").save(
                buffer, format="WEBP", quality=quality)
        elif fmt == "tiff":
            pil.save(buffer, format="TIFF", compression="tiff_lzw")
        elif fmt == "gif":
            pil.convert("L" if grey else "RGB").save(buffer, format="GIF")
        else:
            raise ValueError(f"unsupported output format: {fmt}")
        return buffer.getvalue()

    @staticmethod
    def to_pil(image: Image) -> PILImage.Image:
        pixels = np.ascontiguousarray(image.live_pixels)
        if pixels.shape[2] == 1:
            return PILImage.fromarray(pixels[:, :, 0], mode="L")
        return PILImage.fromarray(pixels)

    # ─── constructors ────────────────────────────────────────────────
    @staticmethod
    @_library_errors
    def black(width: int, height: int, bands: int = 1) -> Image:
        if width <= 0 or height <= 0 or bands <= 0:
            raise GeometryError(f"black: bad size {width}x{height}x{bands}")
        pixels = np.zeros((height, width, bands), dtype=np.uint8)
        interpretation = Interpretation.B_W if bands == 1 else Interpretation.MULTIBAND
        return Image(pixels=pixels, interpretation=interpretation)

    @staticmethod
    def copy(image: Image, interpretation: Interpretation | None = None) -> Image:
        return Image(pixels=image.live_pixels.copy(),
                     interpretation=interpretation or image.interpretation)

    # ─── arithmetic ──────────────────────────────────────────────────
    @staticmethod
    @_library_errors
    def linear(image: Image, a: Sequence[float], b: Sequence[float]) -> Image:
        """out = in * a + b per band, as float32. a/b have 1 or `bands` entries."""
        pixels = image.live_pixels
        a = np.asarray(a, dtype=np.float32).ravel()
        b = np.asarray(b, dtype=np.float32).ravel()
        for name, vec in (("a", a), ("b", b)):
            if vec.size not in (1, pixels.shape[2]):
                raise GeometryError(
                    f"linear: {name} has {vec.size} values for a {pixels.shape[2]}-band image")
        out = pixels.astype(np.float32) * a + b
        return Image(pixels=out, interpretation=image.interpretation)

    @staticmethod
    def linear1(image: Image, a: float, b: float) -> Image:
        return ImageRepository.linear(image, [a], [b])

    @staticmethod
    @_library_errors
    def cast_uchar(image: Image) -> Image:
        """Round and clip to 0..255 uint8."""
        pixels = image.live_pixels
        if pixels.dtype == np.uint8:
            out = pixels.copy()
        else:
            out = np.clip(np.rint(pixels), 0, 255).astype(np.uint8)
        return Image(pixels=out, interpretation=image.interpretation)

    # ─── band handling ───────────────────────────────────────────────
    @staticmethod
    @_library_errors
    def extract_bands(image: Image, first: int, n: int = 1) -> Image:
        pixels = image.live_pixels
        if first < 0 or n <= 0 or first + n > pixels.shape[2]:
            raise GeometryError(f"extract_bands: bands {first}..{first + n - 1} out of range "
                                f"for a {pixels.shape[2]}-band image")
        out = pixels[:, :, first:first + n].copy()
        return Image(pixels=out, interpretation=_default_interpretation(n))

    @staticmethod
    @_library_errors
    def bandjoin_const(image: Image, value: float) -> Image:
        pixels = image.live_pixels
        extra = np.full(pixels.shape[:2] + (1,), value, dtype=pixels.dtype)
        return Image(pixels=np.concatenate([pixels, extra], axis=2),
                     interpretation=image.interpretation)

    @staticmethod
    def add_alpha(image: Image) -> Image:
        """Copy of `image` with an opaque alpha band, unless it already has one."""
        if image.has_alpha:
            return ImageRepository.copy(image)
        return ImageRepository.bandjoin_const(image, 255)

    @staticmethod
    @_library_errors
    def to_grey(image: Image) -> Image:
        """RGB(A) -> single-band luminance."""
        pixels = image.live_pixels
        if pixels.shape[2] not in (3, 4):
            raise GeometryError(f"to_grey: expected 3 or 4 bands, got {pixels.shape[2]}")
        grey = cv2.cvtColor(np.ascontiguousarray(pixels[:, :, :3]), cv2.COLOR_RGB2GRAY)
        return Image(pixels=_bands_last(grey), interpretation=Interpretation.B_W)

    # ─── geometry ────────────────────────────────────────────────────
    @staticmethod
    @_library_errors
    def embed(image: Image, x: int, y: int, width: int, height: int,
              extend: Extend = Extend.BLACK, background: Sequence[float] = (0,)) -> Image:
        """
        Place `image` at (x, y) on a width x height canvas. `background` (one
        value, or one per band) is only used with Extend.BACKGROUND.
        """
        pixels = image.live_pixels
        if width <= 0 or height <= 0:
            raise GeometryError(f"embed: bad canvas size {width}x{height}")
        h, w = pixels.shape[:2]

        # part of the image that lands on the canvas
        left, top = max(0, -x), max(0, -y)
        right, bottom = min(w, width - x), min(h, height - y)

        if extend == Extend.COPY:
            if left >= right or top >= bottom:
                raise GeometryError("embed: image lies entirely outside the canvas")
            visible = np.ascontiguousarray(pixels[top:bottom, left:right])
            pad_t, pad_l = max(0, y), max(0, x)
            pad_b = height - pad_t - (bottom - top)
            pad_r = width - pad_l - (right - left)
            out = cv2.copyMakeBorder(visible, pad_t, pad_b, pad_l, pad_r, cv2.BORDER_REPLICATE)
            return Image(pixels=_bands_last(out), interpretation=image.interpretation)

        out = np.zeros((height, width, pixels.shape[2]), dtype=pixels.dtype)
        if extend == Extend.BACKGROUND:
            fill = np.asarray(background, dtype=np.float64).ravel()
            if fill.size not in (1, pixels.shape[2]):
                raise GeometryError(
                    f"embed: background has {fill.size} values for a {pixels.shape[2]}-band image")
            out[:] = np.clip(np.rint(fill), 0, 255).astype(pixels.dtype)
        if left < right and top < bottom:
            out[y + top:y + bottom, x + left:x + right] = pixels[top:bottom, left:right]
        return Image(pixels=out, interpretation=image.interpretation)

    @staticmethod
    @_library_errors
    def replicate(image: Image, across: int, down: int) -> Image:
        if across <= 0 or down <= 0:
            raise GeometryError(f"replicate: bad repeat count {across}x{down}")
        out = np.tile(image.live_pixels, (down, across, 1))
        return Image(pixels=out, interpretation=image.interpretation)

    @staticmethod
    @_library_errors
    def crop(image: Image, left: int, top: int, width: int, height: int) -> Image:
        pixels = image.live_pixels
        h, w = pixels.shape[:2]
        if (width <= 0 or height <= 0 or left < 0 or top < 0
                or left + width > w or top + height > h):
            raise GeometryError(
                f"crop: area {left},{top} {width}x{height} outside a {w}x{h} image")
        out = pixels[top:top + height, left:left + width].copy()
        return Image(pixels=out, interpretation=image.interpretation)

    @staticmethod
    @_library_errors
    def resize(image: Image, width: int, height: int) -> Image:
        """Bilinear resample to exactly width x height."""
        if width <= 0 or height <= 0:
            raise GeometryError(f"resize: bad size {width}x{height}")
        pixels = image.live_pixels
        if (width, height) == (pixels.shape[1], pixels.shape[0]):
            return ImageRepository.copy(image)
        out = cv2.resize(np.ascontiguousarray(pixels), (width, height), interpolation=cv2.INTER_LINEAR)
        return Image(pixels=_bands_last(out), interpretation=image.interpretation)

    @staticmethod
    @_library_errors
    def gaussian_blur(image: Image, sigma: float, radius: int) -> Image:
        """Gaussian blur with a (2 * radius + 1) square kernel; edges are replicated."""
        if sigma <= 0 or radius < 1:
            raise GeometryError(f"gaussian_blur: bad sigma {sigma} or radius {radius}")
        size = 2 * int(radius) + 1
        out = cv2.GaussianBlur(np.ascontiguousarray(image.live_pixels), (size, size),
                               sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE)
        return Image(pixels=_bands_last(out), interpretation=image.interpretation)

    @staticmethod
    @_library_errors
    def rotate(image: Image, angle: float) -> Image:
        """
        Rotate clockwise by `angle` degrees. The output is sized to the
        bounding box of the rotated input; uncovered corners are black.
        """
        pixels = image.live_pixels
        h, w = pixels.shape[:2]

        if float(angle) % 90 == 0:
            quarter_turns = int(float(angle) // 90) % 4
            out = np.rot90(pixels, k=-quarter_turns, axes=(0, 1)).copy()
            return Image(pixels=out, interpretation=image.interpretation)

        theta = math.radians(angle)
        cos, sin = abs(math.cos(theta)), abs(math.sin(theta))
        new_w = int(math.ceil(round(w * cos + h * sin, 6)))
        new_h = int(math.ceil(round(w * sin + h * cos, 6)))

        # OpenCV angles are counter-clockwise
        matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -angle, 1.0)
        matrix[0, 2] += new_w / 2.0 - w / 2.0
        matrix[1, 2] += new_h / 2.0 - h / 2.0

        out = cv2.warpAffine(np.ascontiguousarray(pixels), matrix, (new_w, new_h),
                             flags=cv2.INTER_LINEAR,
                             borderMode=cv2.BORDER_CONSTANT, borderValue=0)
        return Image(pixels=_bands_last(out), interpretation=image.interpretation)

    # ─── compositing ─────────────────────────────────────────────────
    @staticmethod
    @_library_errors
    def ifthenelse(mask: Image, then: Image, otherwise: Image) -> Image:
        """
        Blending ifthenelse: out = (m * then + (255 - m) * otherwise) / 255.

        The mask has one band (applied to every band) or as many bands as the
        inputs. Nothing is resized or band-converted here.
        """
        m, a, b = mask.live_pixels, then.live_pixels, otherwise.live_pixels
        for name, arr in (("mask", m), ("then", a), ("else", b)):
            if arr.dtype != np.uint8:
                raise GeometryError(f"ifthenelse: {name} image is {arr.dtype}, expected uint8")
        if not (m.shape[:2] == a.shape[:2] == b.shape[:2]):
            raise GeometryError(
                "ifthenelse: images differ in size",
                detail=f"mask {m.shape[1]}x{m.shape[0]}, then {a.shape[1]}x{a.shape[0]}, "
                       f"else {b.shape[1]}x{b.shape[0]}")
        if a.shape[2] != b.shape[2]:
            raise GeometryError(
                f"ifthenelse: then has {a.shape[2]} bands, else has {b.shape[2]}")
        if m.shape[2] not in (1, a.shape[2]):
            raise GeometryError(
                f"ifthenelse: mask has {m.shape[2]} bands, expected 1 or {a.shape[2]}")
        if then.interpretation != otherwise.interpretation:
            raise GeometryError(
                f"ifthenelse: interpretation mismatch "
                f"({then.interpretation.value} vs {otherwise.interpretation.value})")

        weight = m.astype(np.float32)
        out = (weight * a.astype(np.float32) + (255.0 - weight) * b.astype(np.float32)) / 255.0
        out = np.clip(np.rint(out), 0, 255).astype(np.uint8)
        return Image(pixels=out, interpretation=otherwise.interpretation)
