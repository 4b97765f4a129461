"""
Page records shared by the transform, pool, spine and package stages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from PIL import Image


POSITION_LEFT = "left"
POSITION_RIGHT = "right"
POSITION_CENTER = "center"
POSITIONS = {POSITION_LEFT, POSITION_RIGHT, POSITION_CENTER}

MEDIA_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}


@dataclass(frozen=True)
class Task:
    """One decoded source image handed to the worker pool."""

    index: int
    name: str
    image: Image.Image


@dataclass(eq=False)
class PageImage:
    """
    One physical page of the output package.

    `part` is 0 for the whole page, 1 and 2 for the halves of a split double
    page. `image` holds the transformed pixels until they are persisted; only
    the cover (id 0) keeps them afterwards.
    """

    id: int
    part: int
    name: str
    format: str = "jpeg"
    width: int = 0
    height: int = 0
    original_aspect_ratio: float = 0.0
    is_double_page: bool = False
    is_blank: bool = False
    image: Optional[Image.Image] = None
    position: Optional[str] = None

    def key(self, prefix: str) -> str:
        return f"{prefix}_{self.id}_p{self.part}"

    @property
    def img_key(self) -> str:
        return self.key("img")

    @property
    def page_key(self) -> str:
        return self.key("page")

    @property
    def space_key(self) -> str:
        return self.key("space")

    @property
    def extension(self) -> str:
        return "png" if self.format == "png" else "jpeg"

    @property
    def img_path(self) -> str:
        return f"Images/{self.img_key}.{self.extension}"

    @property
    def page_path(self) -> str:
        return f"Text/{self.page_key}.xhtml"

    @property
    def space_path(self) -> str:
        return f"Text/{self.space_key}.xhtml"

    @property
    def epub_img_path(self) -> str:
        """Path of the image inside the package container."""

        return f"OEBPS/{self.img_path}"

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES.get(self.format, "image/jpeg")

    def release(self) -> None:
        """Drop the pixel buffer once it has been persisted."""

        self.image = None


def sort_key(page: PageImage) -> tuple[int, int]:
    return page.id, page.part
