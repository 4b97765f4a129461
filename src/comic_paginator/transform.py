"""
Transform one source image into one output page.

Why this module exists:
- The filter order matters (cut before or after crop changes the result), so
  the chain is built as an explicit ordered list of stages.
- The engine never fails on decoded input; a 1x1 result means "blank".
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Tuple

from PIL import Image

from . import filters
from .config import ConvertOptions
from .model import PageImage, Task


@dataclass
class TransformState:
    """Working data threaded through the stages of one transformation."""

    source: Image.Image
    image: Image.Image
    part: int
    is_double_page: bool = False
    placeholder: bool = False

    @property
    def source_size(self) -> Tuple[int, int]:
        return self.source.size


Stage = Callable[[TransformState], None]


def _split_stage(state: TransformState, right: bool) -> None:
    if state.placeholder:
        return
    state.image = filters.crop_split_double_page(state.image, right)


def _crop_stage(state: TransformState, options: ConvertOptions) -> None:
    bbox = filters.find_margin(
        state.image,
        options.crop_left,
        options.crop_up,
        options.crop_right,
        options.crop_bottom,
        limit=options.crop_limit,
        skip_if_limit_reached=options.crop_skip_if_limit_reached,
    )
    is_blank = filters.bbox_is_empty(bbox)

    if is_blank and (options.crop_enabled or options.no_blank_image):
        state.image = filters.blank_pixel(state.image.mode)
        state.placeholder = True
    elif options.crop_enabled:
        cropped = state.image.crop(bbox)
        cropped.load()
        state.image = cropped


def _detect_double_page(state: TransformState) -> None:
    # Original and cropped bounds must both be landscape; only part 0 qualifies.
    src_width, src_height = state.source_size
    dst_width, dst_height = state.image.size
    state.is_double_page = (
        state.part == 0
        and not state.placeholder
        and src_width > src_height
        and dst_width > dst_height
    )


def _rotate_stage(state: TransformState) -> None:
    if state.is_double_page:
        state.image = filters.rotate_90(state.image)


def _image_stage(state: TransformState, fn: Callable[[Image.Image], Image.Image]) -> None:
    if state.placeholder:
        return
    state.image = fn(state.image)


def _grayscale_stage(state: TransformState, mode: int) -> None:
    state.image = filters.grayscale(state.image, mode)


def _normalize_stage(state: TransformState, grayscale_enabled: bool) -> None:
    state.image = filters.normalize_pixel_format(state.image, state.source, grayscale_enabled)


def build_stages(options: ConvertOptions, part: int, right: bool) -> List[Stage]:
    """Return the enabled stages, in the only order they may run."""

    stages: List[Stage] = []

    # Portrait reading does not need both halves at the same scale: cut, then crop.
    if part > 0 and not options.keep_split_double_page_aspect:
        stages.append(partial(_split_stage, right=right))

    if options.crop_enabled or options.no_blank_image:
        stages.append(partial(_crop_stage, options=options))

    # Landscape reading keeps both halves at the same scale: crop, then cut.
    if part > 0 and options.keep_split_double_page_aspect:
        stages.append(partial(_split_stage, right=right))

    stages.append(_detect_double_page)

    if options.auto_rotate:
        stages.append(_rotate_stage)
    if options.auto_contrast:
        stages.append(partial(_image_stage, fn=filters.auto_contrast))
    if options.contrast != 0:
        stages.append(
            partial(_image_stage, fn=partial(filters.adjust_contrast, percent=options.contrast))
        )
    if options.brightness != 0:
        stages.append(
            partial(_image_stage, fn=partial(filters.adjust_brightness, percent=options.brightness))
        )
    if options.resize:
        stages.append(
            partial(
                _image_stage,
                fn=partial(
                    filters.resize_to_fit,
                    width=options.view_width,
                    height=options.view_height,
                ),
            )
        )
    if options.grayscale:
        stages.append(partial(_grayscale_stage, mode=options.grayscale_mode))

    stages.append(partial(_normalize_stage, grayscale_enabled=options.grayscale))
    return stages


def transform_image(task: Task, part: int, right: bool, options: ConvertOptions) -> PageImage:
    """
    Run the filter chain over one source image.

    `part` selects the whole page (0) or a half of a double page (1, 2);
    `right` picks which half.
    """

    src = task.image
    state = TransformState(source=src, image=filters.working_copy(src), part=part)
    for stage in build_stages(options, part, right):
        stage(state)

    dst = state.image
    width, height = dst.size
    return PageImage(
        id=task.index,
        part=part,
        name=task.name,
        format=options.image_format,
        width=width,
        height=height,
        original_aspect_ratio=src.height / src.width if src.width else 0.0,
        is_double_page=state.is_double_page,
        is_blank=width == 1 and height == 1,
        image=dst,
    )
