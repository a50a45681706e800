"""HTTP surface: x-oss-process parsing, status codes and response bodies."""

import base64
import io

import pytest
from PIL import Image as PILImage

import api_server

SAMPLE = base64.urlsafe_b64encode(b"SAMPLE").decode().rstrip("=")


@pytest.fixture
def client():
    api_server.app.config["TESTING"] = True
    with api_server.app.test_client() as client:
        yield client


@pytest.fixture
def png_body():
    buffer = io.BytesIO()
    PILImage.new("RGB", (200, 150), (120, 130, 140)).save(buffer, format="PNG")
    return buffer.getvalue()


def _post(client, body, chain):
    return client.post("/api/process", data=body, query_string={"x-oss-process": chain})


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "healthy"
    assert "watermark" in payload["operations"]


def test_info(client, png_body):
    response = _post(client, png_body, "image/info")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["Format"]["value"] == "png"
    assert payload["ImageWidth"]["value"] == 200
    assert payload["ImageHeight"]["value"] == 150
    assert payload["FileSize"]["value"] == len(png_body)


def test_watermark_to_png(client, png_body):
    response = _post(client, png_body, f"image/watermark,text_{SAMPLE},t_50,rotate_30,fill_1/format,png")
    assert response.status_code == 200
    assert response.mimetype == "image/png"
    result = PILImage.open(io.BytesIO(response.data))
    assert result.size == (200, 150)


def test_label_then_jpeg(client, png_body):
    chain = f"image/label,text_{SAMPLE},x_10,y_10,color_ff0000,size_20/format,jpg"
    response = _post(client, png_body, chain)
    assert response.status_code == 200
    assert response.mimetype == "image/jpeg"
    assert PILImage.open(io.BytesIO(response.data)).size == (200, 150)


def test_source_format_is_kept_by_default(client, png_body):
    response = _post(client, png_body, f"image/watermark,text_{SAMPLE}")
    assert response.status_code == 200
    assert response.mimetype == "image/png"


@pytest.mark.parametrize("chain", [
    "image/watermark,t_50",            # no text
    "image/sharpen,100",               # unknown operation
    "image/resize",                    # no size at all
    "image/resize,w_-5",
    "image/resize,w_10,m_stretch",
    "image/blur,r_3",                  # sigma is required
    "image/blur,r_80,s_2",
    "image/watermark,text___4",        # base64 of invalid UTF-8
    "image/watermark,text_U0FN,t_abc",  # non-integer parameter
    "image/label,text_U0FN,align_up",
    "image/format,bmp",
    "image/watermark,oops",
    "",
])
def test_bad_parameters_are_400(client, png_body, chain):
    response = _post(client, png_body, chain)
    assert response.status_code == 400
    assert response.get_json()["error"] == "PARAM_ERROR"


def test_undecodable_body_is_400(client):
    response = _post(client, b"not an image at all", f"image/watermark,text_{SAMPLE}")
    assert response.status_code == 400
    assert response.get_json()["error"] == "DECODE_ERROR"


def test_compositing_failure_is_422(client, png_body):
    response = _post(client, png_body, f"image/label,text_{SAMPLE},w_0")
    assert response.status_code == 422
    payload = response.get_json()
    assert payload["error"] == "rasterization"
    assert payload["stage"] == "render_text"


def test_decode_text_accepts_standard_alphabet():
    assert api_server.decode_text("aGk/") == api_server.decode_text("aGk_")
    assert api_server.decode_text("U0FNUExF") == "SAMPLE"


def test_parse_watermark_defaults():
    options = api_server.parse_watermark_opt([f"text_{SAMPLE}"])
    assert options.text == "SAMPLE"
    assert options.opacity == 1.0
    assert options.no_replicate is True
    assert options.margin == api_server.config.WATERMARK_MARGIN

    tiled = api_server.parse_watermark_opt([f"text_{SAMPLE}", "fill_1", "t_25", "color_00ff00"])
    assert tiled.no_replicate is False
    assert tiled.opacity == 0.25
    assert tiled.background.as_tuple() == (0, 255, 0)


def test_resize_keeps_the_aspect_ratio(client, png_body):
    response = _post(client, png_body, "image/resize,w_20/format,png")
    assert response.status_code == 200
    assert PILImage.open(io.BytesIO(response.data)).size == (20, 15)


def test_resize_pad_then_watermark(client, png_body):
    chain = f"image/resize,m_pad,w_100,h_100,color_ff0000/watermark,text_{SAMPLE},fill_1"
    response = _post(client, png_body, chain)
    assert response.status_code == 200
    result = PILImage.open(io.BytesIO(response.data))
    assert result.size == (100, 100)


def test_blur_keeps_the_size(client, png_body):
    response = _post(client, png_body, "image/blur,r_3,s_2")
    assert response.status_code == 200
    assert PILImage.open(io.BytesIO(response.data)).size == (200, 150)


@pytest.mark.parametrize("fmt,mimetype,pil_format", [
    ("tiff", "image/tiff", "TIFF"),
    ("gif", "image/gif", "GIF"),
])
def test_tiff_and_gif_output(client, png_body, fmt, mimetype, pil_format):
    response = _post(client, png_body, f"image/label,text_{SAMPLE},x_5,y_5/format,{fmt}")
    assert response.status_code == 200
    assert response.mimetype == mimetype
    result = PILImage.open(io.BytesIO(response.data))
    assert result.format == pil_format
    assert result.size == (200, 150)


def test_watermark_output_gains_an_alpha_band(client, png_body):
    watermarked = _post(client, png_body, f"image/watermark,text_{SAMPLE}/format,png")
    labelled = _post(client, png_body, f"image/label,text_{SAMPLE}/format,png")
    assert PILImage.open(io.BytesIO(watermarked.data)).mode == "RGBA"
    assert PILImage.open(io.BytesIO(labelled.data)).mode == "RGB"


def test_parse_resize_opt():
    options = api_server.parse_resize_opt(["m_fill", "w_30", "h_40", "limit_0", "color_00ff00"])
    assert options.mode == api_server.ResizeMode.FILL
    assert (options.width, options.height) == (30, 40)
    assert options.limit is False
    assert options.color.as_tuple() == (0, 255, 0)

    default = api_server.parse_resize_opt(["p_50"])
    assert default.mode == api_server.ResizeMode.LFIT
    assert default.limit is True
    assert default.color is None


def test_parse_blur_opt():
    options = api_server.parse_blur_opt(["r_3", "s_2.5"])
    assert (options.radius, options.sigma) == (3, 2.5)
