from contextlib import contextmanager
import logging

from ..models.errors import CompositingError


@contextmanager
def stage(name: str, logger: logging.Logger):
    """
    Run one pipeline stage. A CompositingError raised inside is tagged with
    the stage name (unless a deeper stage already tagged it) and re-raised.
    """
    logger.debug(f"stage {name}")
    try:
        yield
    except CompositingError as err:
        if err.stage is None:
            err.stage = name
        raise
