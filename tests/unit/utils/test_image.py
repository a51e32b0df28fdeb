"""Test image utilities."""
from bill_clarifier.utils.image import (
    get_image_dimensions, image_to_base64, normalize_image, stack_pages,
)
from tests.factories import make_png_bytes, make_tiff_bytes


class TestBase64:
    def test_encodes_ascii(self):
        encoded = image_to_base64(make_png_bytes())
        assert encoded.startswith("iVBORw0KGgo")


class TestNormalizeImage:
    def test_converts_to_png(self):
        normalized = normalize_image(make_tiff_bytes())
        assert normalized[:8] == b'\x89PNG\r\n\x1a\n'

    def test_downscales_long_side(self):
        normalized = normalize_image(make_png_bytes(400, 100), max_side=200)
        assert get_image_dimensions(normalized) == (200, 50)


class TestStackPages:
    def test_vertical_stack(self):
        stacked = stack_pages([make_png_bytes(40, 30), make_png_bytes(60, 20)])
        assert get_image_dimensions(stacked) == (60, 50)
