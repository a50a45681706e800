from __future__ import annotations
from typing import List
import logging

from ..models.image import Image

logger = logging.getLogger(__name__)


class ImageArena:
    """
    Per-call scratch space for intermediate images.

        with ImageArena() as arena:
            mask = arena.track(repo.black(1, 1))
            ...
            return arena.detach(out)

    Everything tracked is released exactly once when the block exits,
    whether it returns or raises. Detached images are handed to the caller
    and left alone.
    """

    def __init__(self) -> None:
        self._owned: List[Image] = []
        self.closed = False

    def track(self, image: Image) -> Image:
        if self.closed:
            raise RuntimeError("arena is already closed")
        if not any(owned is image for owned in self._owned):
            self._owned.append(image)
        return image

    def detach(self, image: Image) -> Image:
        self._owned = [owned for owned in self._owned if owned is not image]
        return image

    def __len__(self) -> int:
        return len(self._owned)

    def release(self) -> None:
        """
        Release every owned image, even when some of them fail to release.
        The first failure is re-raised once the rest are done.
        """
        owned, self._owned = self._owned, []
        failures: List[RuntimeError] = []
        for image in reversed(owned):
            try:
                image.release()
            except RuntimeError as err:
                failures.append(err)
        if owned:
            logger.debug(f"Released {len(owned) - len(failures)} of {len(owned)} intermediate image(s)")
        if failures:
            raise failures[0]

    def __enter__(self) -> "ImageArena":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True
        try:
            self.release()
        except RuntimeError as err:
            if exc is None:
                raise
            # keep the exception that is already unwinding
            logger.error(f"Releasing intermediates after {exc_type.__name__} failed: {err}")
