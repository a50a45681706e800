"""
Command-line front end.

    imagestamp label photo.jpg out.jpg --text "Hello" --font "sans 24" --x 10 --y 10
    imagestamp watermark photo.jpg out.png --text SAMPLE --rotate 30 --opacity 0.5
"""
import argparse
import logging
import sys
from pathlib import Path

from .. import config
from ..models.errors import CompositingError
from ..models.options import Align, Color, LabelOptions, Scalar, WatermarkOptions
from ..pipeline.label import label
from ..pipeline.watermark import watermark
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


def _length(value: str):
    """'120' -> 120 px, '50%' -> half of the source dimension."""
    if value.endswith("%"):
        return Scalar(float(value[:-1]) / 100.0, relative=True)
    return int(value)


def _color(value: str) -> Color:
    try:
        return Color.from_hex(value)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="imagestamp", description="Stamp text labels and watermarks onto images")
    ap.add_argument("--log-level", default=config.LOG_LEVEL, help="DEBUG, INFO, WARNING, ERROR")
    sub = ap.add_subparsers(dest="command", required=True)

    lab = sub.add_parser("label", help="stamp a text label once at an offset")
    lab.add_argument("src", type=Path)
    lab.add_argument("dst", type=Path)
    lab.add_argument("--text", required=True)
    lab.add_argument("--font", default=config.DEFAULT_FONT)
    lab.add_argument("--width", type=_length, default=Scalar(1.0, relative=True),
                     help="wrap width in px or %% of the image width (default 100%%)")
    lab.add_argument("--height", type=_length, default=None,
                     help="fit the text into this height (px or %%)")
    lab.add_argument("--x", type=_length, default=0)
    lab.add_argument("--y", type=_length, default=0)
    lab.add_argument("--align", type=Align.parse, default=Align.LEFT)
    lab.add_argument("--opacity", type=float, default=1.0)
    lab.add_argument("--color", type=_color, default=Color())
    lab.add_argument("--dpi", type=int, default=config.DEFAULT_DPI)

    wm = sub.add_parser("watermark", help="stamp a rotated, tiled text watermark")
    wm.add_argument("src", type=Path)
    wm.add_argument("dst", type=Path)
    wm.add_argument("--text", required=True)
    wm.add_argument("--font", default=config.DEFAULT_FONT)
    wm.add_argument("--width", type=int, default=config.WATERMARK_WIDTH)
    wm.add_argument("--dpi", type=int, default=config.DEFAULT_DPI)
    wm.add_argument("--rotate", type=float, default=0.0, help="clockwise degrees")
    wm.add_argument("--opacity", type=float, default=1.0)
    wm.add_argument("--margin", type=int, default=config.WATERMARK_MARGIN)
    wm.add_argument("--no-replicate", action="store_true", help="stamp once instead of tiling")
    wm.add_argument("--background", type=_color, default=Color(), help="rrggbb")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATEFMT,
    )

    try:
        image = ImageRepository.load(args.src)
    except OSError as err:
        print(f"imagestamp: cannot read {args.src}: {err}", file=sys.stderr)
        return 1
    logger.info(f"Loaded {args.src} ({image.width}x{image.height}, {image.bands} bands)")

    try:
        if args.command == "label":
            out = label(image, LabelOptions(
                text=args.text, font=args.font, width=args.width, height=args.height,
                offset_x=args.x, offset_y=args.y, alignment=args.align,
                opacity=args.opacity, color=args.color, dpi=args.dpi))
        else:
            out = watermark(image, WatermarkOptions(
                text=args.text, font=args.font, width=args.width, dpi=args.dpi,
                rotate=args.rotate, opacity=args.opacity, margin=args.margin,
                no_replicate=args.no_replicate, background=args.background))
    except CompositingError as err:
        print(f"imagestamp: {err.kind.value} error at {err.stage}: {err}", file=sys.stderr)
        return 1

    out.path = args.dst
    try:
        ImageRepository.save(out, quality=config.JPEG_QUALITY)
    except (OSError, ValueError) as err:
        print(f"imagestamp: cannot write {args.dst}: {err}", file=sys.stderr)
        return 1
    logger.info(f"Saved {args.dst}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
