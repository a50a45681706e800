from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    RASTERIZATION = "rasterization"
    GEOMETRY = "geometry"
    ALLOCATION = "allocation"


class CompositingError(Exception):
    """
    Single failure signal for every stamping operation.

    `detail` carries the underlying library diagnostic (OpenCV / Pillow /
    numpy message) so callers can log it without parsing `str(err)`.
    `stage` is filled in by the pipeline that was running when it failed.
    """
    kind: ErrorKind = ErrorKind.GEOMETRY

    def __init__(self, message: str, detail: str | None = None, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.stage = stage

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class RasterizationError(CompositingError):
    """Bad text, font, or layout box handed to the text rasterizer."""
    kind = ErrorKind.RASTERIZATION


class GeometryError(CompositingError):
    """Incompatible extents, band counts, depths, or a zero-size tile."""
    kind = ErrorKind.GEOMETRY


class AllocationError(CompositingError):
    """An intermediate image could not be allocated."""
    kind = ErrorKind.ALLOCATION
