# pipeline/label.py
import logging

from ..models.errors import CompositingError
from ..models.image import Image
from ..models.options import LabelOptions, resolve_length
from ..repositories.image_arena import ImageArena
from ..repositories.image_repository import Extend, ImageRepository
from ..services.compositing_service import CompositingService
from ..services.text_service import TextService
from .stages import stage

logger = logging.getLogger(__name__)


def label(
    image: Image,
    options: LabelOptions,
    *,
    text_service: TextService = TextService(),
    compositing_service: CompositingService = CompositingService(),
    image_repository: ImageRepository = ImageRepository(),
) -> Image:
    """
    Stamp a text label onto *image* and return a new Image:
        • rasterize the text into a coverage mask
        • scale the mask by the opacity and cast it back to uint8
        • place it at the offset on a canvas the size of *image*
        • paint the label colour through the mask over *image*

    *image* itself is never modified or released. Any failure raises a
    CompositingError tagged with the stage that failed, after every
    intermediate has been released.
    """
    width = resolve_length(options.width, image.width)
    height = None if options.height is None else resolve_length(options.height, image.height)
    offset_x = resolve_length(options.offset_x, image.width)
    offset_y = resolve_length(options.offset_y, image.height)

    try:
        with ImageArena() as arena:
            with stage("render_text", logger):
                text = arena.track(text_service.render_text(
                    options.text, options.font, width, height,
                    align=options.alignment, dpi=options.dpi))

            with stage("scale_opacity", logger):
                scaled = arena.track(image_repository.linear1(text, options.opacity, 0.0))

            with stage("cast", logger):
                mask = arena.track(image_repository.cast_uchar(scaled))

            with stage("embed", logger):
                mask = arena.track(image_repository.embed(
                    mask, offset_x, offset_y, image.width, image.height, extend=Extend.BLACK))

            with stage("color_fill", logger):
                fill = arena.track(compositing_service.color_fill(options.color.as_tuple(), image))

            with stage("conform_bands", logger):
                fill = arena.track(compositing_service.conform_fill(fill, image.bands))

            with stage("blend", logger):
                out = arena.track(compositing_service.blend(mask, fill, image))

            logger.info(f"Label '{options.text[:32]}' stamped on {image.width}x{image.height} image")
            return arena.detach(out)
    except CompositingError as err:
        logger.error(f"Label failed at stage {err.stage}: {err}")
        raise
