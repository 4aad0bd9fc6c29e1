"""Unit tests for signature image helpers."""

import io

import pytest
from PIL import Image

from docsign.services.image_service import (
    ImageDecodeError,
    ImageRegistry,
    decode_data_url,
    encode_data_url,
    image_size,
    remove_white_background,
    to_png,
)

from conftest import make_data_url, make_png


class TestDataUrls:
    """Test cases for data URL decoding."""

    def test_decode_returns_image_bytes(self):
        png = make_png(30, 10)

        assert decode_data_url(encode_data_url(png)) == png

    def test_decode_tolerates_line_breaks(self):
        url = make_data_url(30, 10)
        prefix, payload = url.split(",", 1)
        wrapped = prefix + "," + "\n".join(payload[i:i + 60] for i in range(0, len(payload), 60))

        assert image_size(decode_data_url(wrapped)) == (30, 10)

    @pytest.mark.parametrize(
        "value",
        ["", "not a url", "data:text/plain;base64,aGk=", "data:image/png;base64,@@@"],
    )
    def test_rejects_invalid_urls(self, value):
        with pytest.raises(ImageDecodeError):
            decode_data_url(value)

    def test_rejects_bad_padding(self):
        with pytest.raises(ImageDecodeError):
            decode_data_url("data:image/png;base64,abc")


class TestImageConversion:
    """Test cases for image conversion helpers."""

    def test_image_size(self):
        assert image_size(make_png(120, 45)) == (120, 45)

    def test_image_size_rejects_garbage(self):
        with pytest.raises(ImageDecodeError):
            image_size(b"garbage")

    def test_to_png_normalises_mode(self):
        buf = io.BytesIO()
        Image.new("RGB", (8, 4), (255, 0, 0)).save(buf, format="JPEG")

        result = Image.open(io.BytesIO(to_png(buf.getvalue())))

        assert result.format == "PNG"
        assert result.mode == "RGBA"
        assert result.size == (8, 4)

    def test_remove_white_background(self):
        img = Image.new("RGB", (2, 1), (255, 255, 255))
        img.putpixel((1, 0), (10, 10, 10))
        buf = io.BytesIO()
        img.save(buf, format="PNG")

        result = Image.open(io.BytesIO(remove_white_background(buf.getvalue())))

        assert result.getpixel((0, 0))[3] == 0
        assert result.getpixel((1, 0)) == (10, 10, 10, 255)


class TestImageRegistry:
    """Test cases for ImageRegistry."""

    def test_same_image_shares_a_reference(self):
        registry = ImageRegistry()
        url = make_data_url()

        first = registry.put(url)
        second = registry.put(url)

        assert first == second
        assert first.startswith("img_")
        assert len(registry) == 1
        assert registry.get(first) == url

    def test_resolve(self):
        registry = ImageRegistry()
        png = make_png(12, 12)
        ref = registry.put(encode_data_url(png))

        assert registry.resolve(ref) == png
        assert ref in registry

    def test_resolve_unknown_reference(self):
        with pytest.raises(ImageDecodeError):
            ImageRegistry().resolve("img_missing")
