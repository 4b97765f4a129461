"""
Individual image filters used by the transform chain.

Why this module exists:
- Each filter is a small Pillow-only function with no knowledge of options.
- transform.py decides which ones run and in which order.
"""

from __future__ import annotations

from typing import Callable, List, Tuple

from PIL import Image, ImageOps


BBox = Tuple[int, int, int, int]

# Gray level at or above which a pixel counts as page background.
BLANK_GRAY_LEVEL = 0xE0

GRAYSCALE_DESATURATE = 0
GRAYSCALE_AVERAGE = 1
GRAYSCALE_LUMINANCE = 2
GRAYSCALE_MODES = {GRAYSCALE_DESATURATE, GRAYSCALE_AVERAGE, GRAYSCALE_LUMINANCE}

_AVERAGE_MATRIX = (1 / 3, 1 / 3, 1 / 3, 0.0)
_LUMINANCE_MATRIX = (0.2126, 0.7152, 0.0722, 0.0)

# Source mode -> destination mode after the chain. Unknown modes fall back to RGBA.
_DESTINATION_MODES = {
    "1": "L",
    "L": "L",
    "I": "L",
    "I;16": "L",
    "LA": "LA",
    "RGB": "RGB",
    "RGBA": "RGBA",
    "CMYK": "CMYK",
    "P": "P",
}


def working_copy(image: Image.Image) -> Image.Image:
    """
    Convert a decoded source into a mode every filter can handle.

    Filters only deal with L, LA, RGB and RGBA. The source mode is restored
    (where possible) by normalize_pixel_format at the end of the chain.
    """

    mode = image.mode
    if mode in {"L", "LA", "RGB", "RGBA"}:
        return image.copy()
    if mode == "1":
        return image.convert("L")
    if mode == "I" or mode.startswith("I;16"):
        return _reduce_wide_gray(image)
    if mode in {"P", "PA"}:
        has_alpha = mode == "PA" or "transparency" in image.info
        return image.convert("RGBA" if has_alpha else "RGB")
    if "A" in image.getbands():
        return image.convert("RGBA")
    return image.convert("RGB")


def _reduce_wide_gray(image: Image.Image) -> Image.Image:
    """
    Bring 16- or 32-bit gray down to 8-bit L.

    16-bit data maps 65535 to 255. 32-bit data is scaled by its own maximum
    when that exceeds 255 and is otherwise taken as is.
    """

    wide = image.convert("I")
    if image.mode.startswith("I;16"):
        scale = 1 / 257
    else:
        _, high = wide.getextrema()
        scale = 255 / high if high > 255 else 1.0
    return wide.point(lambda value: value * scale).convert("L")


def crop_split_double_page(image: Image.Image, right: bool) -> Image.Image:
    """Keep the left or right half of a double page, cut at the vertical center."""

    width, height = image.size
    middle = width // 2
    box = (middle, 0, width, height) if right else (0, 0, middle, height)
    half = image.crop(box)
    half.load()
    return half


def _content_mask(image: Image.Image) -> Image.Image:
    """Binary mask where 255 marks a non-background pixel."""

    gray = image.convert("L")
    return gray.point(lambda p: 0 if p >= BLANK_GRAY_LEVEL else 255)


def _line_is_blank(mask: Image.Image, box: BBox, ratio: int) -> bool:
    """
    Decide whether a one-pixel line may be cropped away.

    A line is blank when at most `ratio` percent of its pixels are content.
    """

    left, top, right, bottom = box
    length = max(right - left, bottom - top)
    if right <= left or bottom <= top:
        return True
    content = mask.crop(box).histogram()[255]
    return content * 100 <= length * ratio


def find_margin(
    image: Image.Image,
    left_ratio: int,
    up_ratio: int,
    right_ratio: int,
    bottom_ratio: int,
    limit: int = 0,
    skip_if_limit_reached: bool = False,
) -> BBox:
    """
    Find the content box by scanning inward from each edge.

    Edges are scanned left, up, right, bottom; each scan only looks at the area
    the previous ones left. `limit` caps, in percent of the image size, how far
    an edge may move (0 means unlimited). When an edge hits the limit it stops
    there, or the whole crop is abandoned if `skip_if_limit_reached` is set.

    The returned box may be empty (right <= left or bottom <= top) when the
    image holds no content at all.
    """

    width, height = image.size
    full_bbox: BBox = (0, 0, width, height)
    if width <= 0 or height <= 0:
        return full_bbox

    mask = _content_mask(image)
    max_cut_x = width * limit // 100 if limit > 0 else width
    max_cut_y = height * limit // 100 if limit > 0 else height
    left, top, right, bottom = full_bbox

    moved = 0
    while left < right and _line_is_blank(mask, (left, top, left + 1, bottom), left_ratio):
        if moved >= max_cut_x:
            if skip_if_limit_reached:
                return full_bbox
            break
        left += 1
        moved += 1

    moved = 0
    while top < bottom and _line_is_blank(mask, (left, top, right, top + 1), up_ratio):
        if moved >= max_cut_y:
            if skip_if_limit_reached:
                return full_bbox
            break
        top += 1
        moved += 1

    moved = 0
    while right > left and _line_is_blank(mask, (right - 1, top, right, bottom), right_ratio):
        if moved >= max_cut_x:
            if skip_if_limit_reached:
                return full_bbox
            break
        right -= 1
        moved += 1

    moved = 0
    while bottom > top and _line_is_blank(mask, (left, bottom - 1, right, bottom), bottom_ratio):
        if moved >= max_cut_y:
            if skip_if_limit_reached:
                return full_bbox
            break
        bottom -= 1
        moved += 1

    return left, top, right, bottom


def bbox_is_empty(bbox: BBox) -> bool:
    left, top, right, bottom = bbox
    return right <= left or bottom <= top


def blank_pixel(mode: str) -> Image.Image:
    """1x1 white placeholder standing in for a page with no content."""

    return Image.new(mode, (1, 1), "white")


def _apply_tone(image: Image.Image, fn: Callable[[Image.Image], Image.Image]) -> Image.Image:
    """Run a tone filter on the color bands and carry the alpha band through."""

    if image.mode in {"L", "RGB"}:
        return fn(image)
    if image.mode in {"LA", "RGBA"}:
        alpha = image.getchannel("A")
        toned = fn(image.convert("L" if image.mode == "LA" else "RGB"))
        toned.putalpha(alpha)
        return toned
    return fn(image.convert("RGB"))


def auto_contrast(image: Image.Image) -> Image.Image:
    return _apply_tone(image, ImageOps.autocontrast)


def _point_table(fn: Callable[[float], float]) -> List[int]:
    """256-entry lookup table, rounded and clamped to 0..255."""

    return [min(255, max(0, round(fn(value)))) for value in range(256)]


def _apply_table(image: Image.Image, table: List[int]) -> Image.Image:
    return image.point(table * len(image.getbands()))


def adjust_contrast(image: Image.Image, percent: int) -> Image.Image:
    """
    Contrast change in percent, -100 (flat gray) to 100 (double).

    Values are stretched around mid-gray, not around the image mean, so a
    mostly white page does not push its mid-tones darker.
    """

    factor = 1 + percent / 100
    table = _point_table(lambda value: 127.5 + (value - 127.5) * factor)
    return _apply_tone(image, lambda img: _apply_table(img, table))


def adjust_brightness(image: Image.Image, percent: int) -> Image.Image:
    """Brightness shift in percent of full scale, -100 (black) to 100 (white)."""

    offset = 255 * percent / 100
    table = _point_table(lambda value: value + offset)
    return _apply_tone(image, lambda img: _apply_table(img, table))


def rotate_90(image: Image.Image) -> Image.Image:
    """Rotate a quarter turn counter-clockwise."""

    return image.transpose(Image.Transpose.ROTATE_90)


def resize_to_fit(image: Image.Image, width: int, height: int) -> Image.Image:
    """
    Shrink to fit inside width x height, keeping aspect ratio.

    Pages already inside the viewport keep their size.
    """

    if image.width <= width and image.height <= height:
        return image
    return ImageOps.contain(image, (width, height), method=Image.Resampling.LANCZOS)


def grayscale(image: Image.Image, mode: int) -> Image.Image:
    """
    Convert to a single gray band.

    Modes:
    - 0: plain desaturation (ITU-R 601-2 luma, Pillow's default)
    - 1: arithmetic mean of R, G and B
    - 2: perceptual luma, 0.2126 R + 0.7152 G + 0.0722 B
    """

    if image.mode == "L":
        return image
    if mode == GRAYSCALE_AVERAGE:
        return image.convert("RGB").convert("L", _AVERAGE_MATRIX)
    if mode == GRAYSCALE_LUMINANCE:
        return image.convert("RGB").convert("L", _LUMINANCE_MATRIX)
    return image.convert("L")


def destination_mode(source_mode: str, grayscale_enabled: bool) -> str:
    if grayscale_enabled:
        return "L"
    return _DESTINATION_MODES.get(source_mode, "RGBA")


def normalize_pixel_format(
    image: Image.Image,
    source: Image.Image,
    grayscale_enabled: bool = False,
) -> Image.Image:
    """
    Give the result a concrete mode matching the source channel layout.

    Paletted sources are mapped back onto their own palette without dithering.
    """

    target = destination_mode(source.mode, grayscale_enabled)
    if target == "P":
        return image.convert("RGB").quantize(palette=source, dither=Image.Dither.NONE)
    if image.mode == target:
        return image
    return image.convert(target)
