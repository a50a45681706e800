#!/usr/bin/env python3
"""
imagestamp API Server
OSS-style processing chain: POST the raw image bytes to

    /api/process?x-oss-process=image/watermark,text_U0FNUExF,t_50,rotate_30,fill_1/format,png

Operations run left to right; `info` answers with the image metadata instead.
"""

import base64
import binascii
import logging
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from imagestamp import config
from imagestamp.models.errors import CompositingError
from imagestamp.models.options import (Align, BlurOptions, Color, LabelOptions, ResizeMode,
                                       ResizeOptions, Scalar, WatermarkOptions)
from imagestamp.pipeline.blur import blur
from imagestamp.pipeline.label import label
from imagestamp.pipeline.resize import resize
from imagestamp.pipeline.watermark import watermark
from imagestamp.repositories.image_arena import ImageArena
from imagestamp.repositories.image_repository import ImageRepository

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=config.LOG_LEVEL,
    format=config.LOG_FORMAT,
    datefmt=config.LOG_DATEFMT
)

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_SIZE_MB * 1024 * 1024

image_repository = ImageRepository()

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "tiff": "image/tiff",
    "gif": "image/gif",
}

PIPELINES = {"resize": resize, "watermark": watermark, "label": label, "blur": blur}


class ParamError(ValueError):
    """Malformed x-oss-process parameter; answered with a 400."""


def decode_text(value: str) -> str:
    """URL-safe (or standard) base64, padding optional."""
    value = value.replace("+", "-").replace("/", "_")
    value += "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(value).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ParamError(f"text_ is not base64-encoded UTF-8: {e}")


def split_params(opts: List[str]) -> Dict[str, str]:
    """['t_50', 'color_ff0000'] -> {'t': '50', 'color': 'ff0000'}"""
    params = {}
    for opt in opts:
        key, sep, value = opt.partition("_")
        if not sep:
            raise ParamError(f"malformed parameter: {opt}")
        params[key] = value
    return params


def int_param(params: Dict[str, str], key: str, default: Optional[int]) -> Optional[int]:
    if key not in params:
        return default
    try:
        return int(params[key])
    except ValueError:
        raise ParamError(f"{key}_ must be an integer, got {params[key]!r}")


def float_param(params: Dict[str, str], key: str) -> float:
    try:
        return float(params.get(key, "0"))
    except ValueError:
        raise ParamError(f"{key}_ must be a number, got {params[key]!r}")


def color_param(params: Dict[str, str]) -> Color:
    try:
        return Color.from_hex(params.get("color", "000000"))
    except ValueError as e:
        raise ParamError(str(e))


def text_param(params: Dict[str, str]) -> str:
    if not params.get("text"):
        raise ParamError("Missing required param: text")
    return decode_text(params["text"])


def parse_watermark_opt(opts: List[str]) -> WatermarkOptions:
    params = split_params(opts)
    return WatermarkOptions(
        text=text_param(params),
        font=f"{config.API_FONT_FAMILY} {int_param(params, 'size', config.API_FONT_SIZE)}",
        width=config.WATERMARK_WIDTH,
        dpi=config.DEFAULT_DPI,
        rotate=int_param(params, "rotate", 0),
        opacity=int_param(params, "t", 100) / 100.0,
        margin=config.WATERMARK_MARGIN,
        no_replicate=int_param(params, "fill", 0) != 1,
        background=color_param(params),
    )


def parse_label_opt(opts: List[str]) -> LabelOptions:
    params = split_params(opts)
    try:
        alignment = Align.parse(params.get("align", "left"))
    except ValueError:
        raise ParamError(f"align_ must be left, centre or right, got {params['align']!r}")
    width = int_param(params, "w", None)
    return LabelOptions(
        text=text_param(params),
        font=f"{config.API_FONT_FAMILY} {int_param(params, 'size', config.API_FONT_SIZE)}",
        width=Scalar(1.0, relative=True) if width is None else width,
        height=int_param(params, "h", None),
        offset_x=int_param(params, "x", 0),
        offset_y=int_param(params, "y", 0),
        alignment=alignment,
        opacity=int_param(params, "t", 100) / 100.0,
        color=color_param(params),
    )


def parse_resize_opt(opts: List[str]) -> ResizeOptions:
    params = split_params(opts)
    try:
        mode = ResizeMode(params.get("m", "lfit"))
    except ValueError:
        raise ParamError(f"m_ must be lfit, mfit, fill, pad or fixed, got {params['m']!r}")
    options = ResizeOptions(
        width=int_param(params, "w", 0),
        height=int_param(params, "h", 0),
        mode=mode,
        limit=int_param(params, "limit", 1) != 0,
        long_side=int_param(params, "l", 0),
        short_side=int_param(params, "s", 0),
        percent=int_param(params, "p", 0),
        color=color_param(params) if "color" in params else None,
    )
    sizes = (options.width, options.height, options.long_side, options.short_side, options.percent)
    if any(v < 0 for v in sizes):
        raise ParamError("resize sizes must not be negative")
    if not any(sizes):
        raise ParamError("Width and Height can not both be 0.")
    return options


def parse_blur_opt(opts: List[str]) -> BlurOptions:
    params = split_params(opts)
    radius, sigma = float_param(params, "r"), float_param(params, "s")
    if radius == 0 or sigma == 0:
        raise ParamError("Missing required param: sigma or radius")
    if not (1 <= radius <= 50 and 1 <= sigma <= 50):
        raise ParamError("r_ and s_ must be between 1 and 50")
    return BlurOptions(radius=int(round(radius)), sigma=sigma)


OPTION_PARSERS = {
    "resize": parse_resize_opt,
    "watermark": parse_watermark_opt,
    "label": parse_label_opt,
    "blur": parse_blur_opt,
}


def parse_process(chain: str) -> Tuple[list, Optional[str], bool]:
    """
    Returns:
        operations: [(name, options), ...] in request order
        target_format: requested output format or None
        is_info: True when `info` was requested
    """
    operations, target_format, is_info = [], None, False
    for step in chain.replace("image/", "").split("/"):
        if not step:
            continue
        name, *opts = step.split(",")
        if name == "info":
            is_info = True
        elif name == "format":
            target_format = (opts[0] if opts else "").lower().replace("jpg", "jpeg")
            if target_format not in MIME_TYPES:
                raise ParamError(f"unsupported format: {target_format or 'missing'}")
        elif name in OPTION_PARSERS:
            operations.append((name, OPTION_PARSERS[name](opts)))
        else:
            raise ParamError(f"unknown opt: {name}")
    return operations, target_format, is_info


@app.route('/api/process', methods=['POST'])
def process():
    """Apply an x-oss-process chain to the posted image."""
    try:
        operations, target_format, is_info = parse_process(request.args.get('x-oss-process', ''))
    except ParamError as e:
        return jsonify({'error': 'PARAM_ERROR', 'message': str(e)}), 400

    data = request.get_data()
    try:
        image, source_format = image_repository.decode(data)
    except ValueError as e:
        logger.error(f"Decode error: {e}")
        return jsonify({'error': 'DECODE_ERROR', 'message': str(e)}), 400

    if is_info:
        return jsonify({
            'FileSize': {'value': len(data)},
            'Format': {'value': source_format},
            'ImageHeight': {'value': image.height},
            'ImageWidth': {'value': image.width},
        })

    if not operations and target_format is None:
        return jsonify({'error': 'PARAM_ERROR', 'message': 'unknown opt'}), 400

    with ImageArena() as arena:
        arena.track(image)
        try:
            for name, options in operations:
                if name == "watermark":
                    # watermarked responses always carry an alpha band
                    image = arena.track(image_repository.add_alpha(image))
                image = arena.track(PIPELINES[name](image, options))
        except CompositingError as e:
            logger.error(f"{name} failed at stage {e.stage}: {e}")
            return jsonify({'error': e.kind.value, 'message': str(e), 'stage': e.stage}), 422

        fmt = target_format or source_format
        if fmt not in MIME_TYPES:
            fmt = "png"
        body = image_repository.encode(image, fmt, config.JPEG_QUALITY)

    logger.info(f"Processed {len(operations)} operation(s) -> {fmt}, {len(body)} bytes")
    return Response(body, mimetype=MIME_TYPES[fmt])


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'imagestamp API is running',
        'operations': sorted(PIPELINES) + ['format', 'info'],
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {config.MAX_UPLOAD_SIZE_MB}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    logger.info(f"Starting imagestamp API server (max upload {config.MAX_UPLOAD_SIZE_MB}MB)")
    app.run(host='0.0.0.0', port=5000, debug=False)


if __name__ == '__main__':
    main()
