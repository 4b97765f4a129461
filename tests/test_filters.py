"""
Tests for the individual Pillow filters.
"""

from __future__ import annotations

import importlib
import unittest

from PIL import Image

import helpers_cli  # noqa: F401  (puts src/ on sys.path)

filters = importlib.import_module("comic_paginator.filters")


def _page_with_block(size=(10, 10), block=(3, 2, 7, 8), fill=0) -> Image.Image:
    image = Image.new("L", size, 255)
    image.paste(fill, block)
    return image


class FindMarginTests(unittest.TestCase):
    def test_finds_content_box(self) -> None:
        bbox = filters.find_margin(_page_with_block(), 0, 0, 0, 0)
        self.assertEqual(bbox, (3, 2, 7, 8))

    def test_light_gray_counts_as_background(self) -> None:
        image = _page_with_block(fill=0xE0)
        bbox = filters.find_margin(image, 0, 0, 0, 0)
        self.assertTrue(filters.bbox_is_empty(bbox))

    def test_blank_image_gives_empty_box(self) -> None:
        bbox = filters.find_margin(Image.new("RGB", (20, 30), "white"), 1, 1, 1, 3)
        self.assertTrue(filters.bbox_is_empty(bbox))

    def test_ratio_tolerates_stray_pixels(self) -> None:
        image = _page_with_block(size=(100, 100), block=(40, 40, 60, 60))
        image.putpixel((0, 50), 0)

        strict = filters.find_margin(image, 0, 0, 0, 0)
        tolerant = filters.find_margin(image, 1, 0, 0, 0)

        self.assertEqual(strict[0], 0)
        self.assertEqual(tolerant[0], 40)

    def test_limit_stops_each_edge(self) -> None:
        image = _page_with_block(size=(100, 100), block=(50, 50, 51, 51))
        bbox = filters.find_margin(image, 0, 0, 0, 0, limit=10)
        self.assertEqual(bbox, (10, 10, 90, 90))

    def test_limit_reached_can_skip_crop(self) -> None:
        image = _page_with_block(size=(100, 100), block=(50, 50, 51, 51))
        bbox = filters.find_margin(image, 0, 0, 0, 0, limit=10, skip_if_limit_reached=True)
        self.assertEqual(bbox, (0, 0, 100, 100))

    def test_blank_pixel_is_white(self) -> None:
        pixel = filters.blank_pixel("L")
        self.assertEqual(pixel.size, (1, 1))
        self.assertEqual(pixel.getpixel((0, 0)), 255)


class SplitAndGeometryTests(unittest.TestCase):
    def test_split_keeps_requested_half(self) -> None:
        image = Image.new("L", (10, 4), 255)
        image.paste(0, (0, 0, 5, 4))

        left = filters.crop_split_double_page(image, right=False)
        right = filters.crop_split_double_page(image, right=True)

        self.assertEqual(left.size, (5, 4))
        self.assertEqual(right.size, (5, 4))
        self.assertEqual(left.getpixel((2, 2)), 0)
        self.assertEqual(right.getpixel((2, 2)), 255)

    def test_rotate_quarter_turn(self) -> None:
        rotated = filters.rotate_90(Image.new("RGB", (20, 10)))
        self.assertEqual(rotated.size, (10, 20))

    def test_resize_shrinks_keeping_aspect_ratio(self) -> None:
        self.assertEqual(filters.resize_to_fit(Image.new("L", (200, 100)), 100, 100).size, (100, 50))
        self.assertEqual(filters.resize_to_fit(Image.new("L", (300, 200)), 100, 100).size, (100, 67))

    def test_resize_never_enlarges_small_pages(self) -> None:
        self.assertEqual(filters.resize_to_fit(Image.new("L", (100, 150)), 1236, 1648).size, (100, 150))
        self.assertEqual(filters.resize_to_fit(Image.new("L", (10, 20)), 10, 20).size, (10, 20))


class ToneTests(unittest.TestCase):
    def test_grayscale_modes(self) -> None:
        blue = Image.new("RGB", (1, 1), (0, 0, 255))
        white = Image.new("RGB", (1, 1), (255, 255, 255))

        self.assertAlmostEqual(filters.grayscale(blue, 0).getpixel((0, 0)), 29, delta=1)
        self.assertAlmostEqual(filters.grayscale(blue, 1).getpixel((0, 0)), 85, delta=1)
        self.assertAlmostEqual(filters.grayscale(blue, 2).getpixel((0, 0)), 18, delta=1)
        for mode in (0, 1, 2):
            result = filters.grayscale(white, mode)
            self.assertEqual(result.mode, "L")
            self.assertEqual(result.getpixel((0, 0)), 255)

    def test_brightness_keeps_alpha(self) -> None:
        image = Image.new("RGBA", (2, 2), (100, 100, 100, 40))
        result = filters.adjust_brightness(image, -50)
        self.assertEqual(result.mode, "RGBA")
        red, _, _, alpha = result.getpixel((0, 0))
        self.assertEqual(alpha, 40)
        self.assertLess(red, 100)

    def test_brightness_shifts_by_full_scale_percent(self) -> None:
        black = Image.new("L", (1, 1), 0)
        self.assertEqual(filters.adjust_brightness(black, 50).getpixel((0, 0)), 128)
        self.assertEqual(filters.adjust_brightness(black, 100).getpixel((0, 0)), 255)
        white = Image.new("RGB", (1, 1), (255, 255, 255))
        self.assertEqual(filters.adjust_brightness(white, -100).getpixel((0, 0)), (0, 0, 0))

    def test_contrast_pivots_on_mid_gray(self) -> None:
        page = Image.new("L", (10, 10), 230)
        page.putpixel((0, 0), 128)
        page.putpixel((1, 0), 28)
        result = filters.adjust_contrast(page, 50)
        self.assertAlmostEqual(result.getpixel((0, 0)), 128, delta=1)
        self.assertEqual(result.getpixel((1, 0)), 0)
        self.assertEqual(result.getpixel((5, 5)), 255)

    def test_contrast_minus_100_is_flat(self) -> None:
        image = Image.new("L", (2, 1))
        image.putpixel((0, 0), 0)
        image.putpixel((1, 0), 200)
        result = filters.adjust_contrast(image, -100)
        self.assertEqual(result.getpixel((0, 0)), result.getpixel((1, 0)))


class PixelFormatTests(unittest.TestCase):
    def test_destination_modes(self) -> None:
        self.assertEqual(filters.destination_mode("RGB", grayscale_enabled=True), "L")
        self.assertEqual(filters.destination_mode("CMYK", grayscale_enabled=False), "CMYK")
        self.assertEqual(filters.destination_mode("I;16", grayscale_enabled=False), "L")
        self.assertEqual(filters.destination_mode("YCbCr", grayscale_enabled=False), "RGBA")

    def test_paletted_source_stays_paletted(self) -> None:
        source = Image.new("RGB", (4, 4), (200, 30, 30)).quantize(colors=4)
        work = filters.working_copy(source)
        self.assertEqual(work.mode, "RGB")

        result = filters.normalize_pixel_format(work, source, grayscale_enabled=False)
        self.assertEqual(result.mode, "P")

    def test_sixteen_bit_gray_is_reduced(self) -> None:
        source = Image.new("I;16", (2, 2), 65535)
        work = filters.working_copy(source)
        self.assertEqual(work.mode, "L")
        self.assertEqual(work.getpixel((0, 0)), 255)

    def test_thirty_two_bit_gray_uses_its_own_range(self) -> None:
        wide = Image.new("I", (2, 1), 0)
        wide.putpixel((0, 0), 100000)
        wide.putpixel((1, 0), 50000)
        work = filters.working_copy(wide)
        self.assertEqual(work.mode, "L")
        self.assertEqual(work.getpixel((0, 0)), 255)
        self.assertAlmostEqual(work.getpixel((1, 0)), 127, delta=1)

    def test_narrow_thirty_two_bit_gray_is_kept(self) -> None:
        narrow = Image.new("I", (1, 1), 200)
        self.assertEqual(filters.working_copy(narrow).getpixel((0, 0)), 200)


if __name__ == "__main__":
    unittest.main()
