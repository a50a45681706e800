# pipeline/watermark.py
import logging

from ..models.errors import CompositingError
from ..models.image import Image
from ..models.options import Align, WatermarkOptions
from ..repositories.image_arena import ImageArena
from ..repositories.image_repository import Extend, ImageRepository
from ..services.compositing_service import CompositingService
from ..services.text_service import TextService
from .stages import stage

logger = logging.getLogger(__name__)

OPAQUE = 255


def watermark(
    image: Image,
    options: WatermarkOptions,
    *,
    text_service: TextService = TextService(),
    compositing_service: CompositingService = CompositingService(),
    image_repository: ImageRepository = ImageRepository(),
) -> Image:
    """
    Stamp a rotated, semi-transparent text watermark onto *image*.

    The centred, justified text mask is rotated clockwise by
    `options.rotate` degrees, scaled by the opacity, padded on the right and
    bottom by `options.margin`, then tiled across the whole image (or
    stamped once at the top-left when `no_replicate` is set) and used to
    blend the opaque background colour over *image*.

    Returns a new Image with *image*'s size and interpretation.
    """
    try:
        with ImageArena() as arena:
            with stage("render_text", logger):
                text = arena.track(text_service.render_text(
                    options.text, options.font, options.width,
                    align=Align.CENTRE, dpi=options.dpi,
                    rgba=True, justify=True, spacing=1))

            with stage("rotate", logger):
                rotated = arena.track(image_repository.rotate(text, options.rotate))

            with stage("scale_opacity", logger):
                scaled = arena.track(image_repository.linear1(rotated, options.opacity, 0.0))

            with stage("cast", logger):
                mask = arena.track(image_repository.cast_uchar(scaled))

            with stage("embed", logger):
                mask = arena.track(image_repository.embed(
                    mask, 0, 0, mask.width + options.margin, mask.height + options.margin))

            if options.no_replicate:
                with stage("embed", logger):
                    mask = arena.track(image_repository.embed(
                        mask, 0, 0, image.width, image.height, extend=Extend.BLACK))
            else:
                with stage("replicate", logger):
                    mask = arena.track(compositing_service.replicate_to_cover(mask, image))

            with stage("color_fill", logger):
                fill = arena.track(compositing_service.color_fill(
                    options.background.as_tuple() + (OPAQUE,), image))

            with stage("conform_bands", logger):
                fill = arena.track(compositing_service.conform_fill(fill, image.bands))
                mask = arena.track(compositing_service.conform_mask(mask, image.bands))

            with stage("blend", logger):
                out = arena.track(compositing_service.blend(mask, fill, image))

            logger.info(f"Watermark '{options.text[:32]}' stamped on {image.width}x{image.height} image "
                        f"(rotate={options.rotate}, replicate={not options.no_replicate})")
            return arena.detach(out)
    except CompositingError as err:
        logger.error(f"Watermark failed at stage {err.stage}: {err}")
        raise
