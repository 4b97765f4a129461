"""
Assign spread placement to every page and build the reading spine.

Why this module exists:
- E-readers pair pages two by two; a double page has to land on a spread of
  its own, which needs blank spacer pages around it.
- The walk is a single pass carrying one boolean: is the next page on the
  right? Every page toggles it, and a double page resets it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .model import POSITION_CENTER, POSITION_LEFT, POSITION_RIGHT, PageImage


TITLE_PAGE_KEY = "page_title"
TITLE_SPACE_KEY = "space_title"
SPREAD_PREFIX = "rendition:page-spread-"
LAYOUT_BLANK = "layout-blank"


@dataclass(frozen=True)
class SpineEntry:
    """One itemref of the spine; `properties` is None in portrait-only mode."""

    idref: str
    properties: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return self.properties is not None and LAYOUT_BLANK in self.properties.split()


def spread_property(position: str) -> str:
    return f"{SPREAD_PREFIX}{position}"


class SpreadState:
    """Left/right alternation carried across the walk."""

    def __init__(self, manga: bool, reader_compatibility: bool) -> None:
        self.manga = manga
        self.is_on_the_right = not manga
        if reader_compatibility:
            self.is_on_the_right = not self.is_on_the_right

    def next_position(self, is_double_page: bool) -> str:
        self.is_on_the_right = not self.is_on_the_right
        if is_double_page:
            # Center the double page, then restart the alternation for the
            # reading direction.
            self.is_on_the_right = not self.manga
            return POSITION_CENTER
        return POSITION_RIGHT if self.is_on_the_right else POSITION_LEFT

    def needs_spacer(self) -> bool:
        return self.manga == self.is_on_the_right

    def spread(self, is_double_page: bool = False) -> str:
        return spread_property(self.next_position(is_double_page))

    def blank_spread(self) -> str:
        return f"{self.spread()} {LAYOUT_BLANK}"


def _portrait_spine(pages: Sequence[PageImage], has_title_page: bool) -> List[SpineEntry]:
    spine: List[SpineEntry] = []
    if has_title_page:
        spine.append(SpineEntry(TITLE_PAGE_KEY))
    for page in pages:
        spine.append(SpineEntry(page.page_key))
    return spine


def assemble_spine(
    pages: List[PageImage],
    *,
    manga: bool,
    portrait_only: bool = False,
    reader_compatibility: bool = False,
    has_title_page: bool = False,
) -> List[SpineEntry]:
    """
    Walk the ordered pages once, set each `position` and return the spine.

    Positions are written back by index into `pages`. In portrait-only mode no
    spread metadata is produced at all and positions stay None.
    """

    if not pages:
        raise ValueError("assemble_spine needs at least one page.")

    if portrait_only:
        return _portrait_spine(pages, has_title_page)

    state = SpreadState(manga, reader_compatibility)
    spine: List[SpineEntry] = []

    if has_title_page:
        if reader_compatibility:
            spine.append(SpineEntry(TITLE_PAGE_KEY, state.spread(True)))
        else:
            spine.append(SpineEntry(TITLE_SPACE_KEY, state.blank_spread()))
            spine.append(SpineEntry(TITLE_PAGE_KEY, state.spread()))

    for index in range(len(pages)):
        page = pages[index]
        if (page.is_double_page or page.part == 1) and state.needs_spacer():
            spine.append(SpineEntry(page.space_key, state.blank_spread()))
        position = state.next_position(page.is_double_page)
        pages[index].position = position
        spine.append(SpineEntry(page.page_key, spread_property(position)))

    if state.needs_spacer():
        # Close an odd trailing alternation with the last page's spacer.
        spine.append(SpineEntry(pages[-1].space_key, state.spread()))

    return spine


def spacer_pages(pages: Sequence[PageImage], spine: Sequence[SpineEntry]) -> List[PageImage]:
    """Pages whose spacer resource is referenced by the spine, in page order."""

    referenced = {entry.idref for entry in spine}
    return [page for page in pages if page.space_key in referenced]
