"""Command-line front end."""

import pytest
from PIL import Image as PILImage

from imagestamp.cli.stamp import build_parser, main
from imagestamp.models.options import Scalar


@pytest.fixture
def src(tmp_path):
    path = tmp_path / "src.png"
    PILImage.new("RGB", (160, 120), (200, 200, 200)).save(path)
    return path


def test_watermark_command(src, tmp_path):
    dst = tmp_path / "out.png"
    code = main(["watermark", str(src), str(dst), "--text", "SAMPLE",
                 "--rotate", "30", "--opacity", "0.5", "--background", "ff0000"])
    assert code == 0
    with PILImage.open(dst) as result:
        assert result.size == (160, 120)


def test_label_command_to_jpeg(src, tmp_path):
    dst = tmp_path / "out.jpg"
    code = main(["label", str(src), str(dst), "--text", "Hello", "--font", "sans 18",
                 "--x", "10%", "--y", "5", "--align", "center"])
    assert code == 0
    with PILImage.open(dst) as result:
        assert result.format == "JPEG"
        assert result.size == (160, 120)


def test_compositing_error_exits_nonzero(src, tmp_path, capsys):
    dst = tmp_path / "out.png"
    code = main(["label", str(src), str(dst), "--text", "Hello", "--width", "0"])
    assert code == 1
    assert not dst.exists()
    assert "rasterization" in capsys.readouterr().err


def test_relative_lengths_parse():
    args = build_parser().parse_args(["label", "a.png", "b.png", "--text", "t", "--width", "50%"])
    assert args.width == Scalar(0.5, relative=True)
    assert args.x == 0


def test_bad_colour_is_a_usage_error():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["watermark", "a.png", "b.png", "--text", "t", "--background", "red"])


def test_unreadable_source_exits_nonzero(tmp_path, capsys):
    missing = tmp_path / "missing.png"
    code = main(["watermark", str(missing), str(tmp_path / "out.png"), "--text", "SAMPLE"])
    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("imagestamp: cannot read")
    assert len(err.strip().splitlines()) == 1


def test_unwritable_destination_exits_nonzero(src, tmp_path, capsys):
    dst = tmp_path / "no-such-dir" / "out.png"
    code = main(["label", str(src), str(dst), "--text", "Hello"])
    assert code == 1
    assert "cannot write" in capsys.readouterr().err
    assert not dst.exists()


def test_unknown_destination_suffix_exits_nonzero(src, tmp_path, capsys):
    dst = tmp_path / "out.xyz"
    code = main(["watermark", str(src), str(dst), "--text", "SAMPLE"])
    assert code == 1
    assert "cannot write" in capsys.readouterr().err
