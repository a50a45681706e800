# pipeline/blur.py
import logging

from ..models.errors import CompositingError
from ..models.image import Image
from ..models.options import BlurOptions
from ..repositories.image_repository import ImageRepository
from .stages import stage

logger = logging.getLogger(__name__)


def blur(
    image: Image,
    options: BlurOptions,
    *,
    image_repository: ImageRepository = ImageRepository(),
) -> Image:
    """Gaussian-blur *image* into a new Image of the same geometry."""
    try:
        with stage("blur", logger):
            out = image_repository.gaussian_blur(image, options.sigma, options.radius)
    except CompositingError as err:
        logger.error(f"Blur failed at stage {err.stage}: {err}")
        raise
    logger.info(f"Blurred {image.width}x{image.height} image (r={options.radius}, s={options.sigma})")
    return out
