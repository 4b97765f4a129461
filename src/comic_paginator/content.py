"""
Content descriptor of the package and its OPF rendering.

`Content` gathers everything the package metadata needs: book metadata, the
ordered pages (with positions once the spine is assembled) and the cover.
`to_xml()` renders the metadata, manifest, spine and guide sections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import xml.etree.ElementTree as ET

from .config import ConvertOptions
from .model import PageImage
from .spine import (
    TITLE_PAGE_KEY,
    TITLE_SPACE_KEY,
    SpineEntry,
    assemble_spine,
    spacer_pages,
)


COVER_PAGE_PATH = "Text/cover.xhtml"
COVER_IMAGE_PATH = "Images/cover.jpeg"
TITLE_PAGE_PATH = "Text/title.xhtml"
TITLE_IMAGE_PATH = "Images/title.jpeg"
TITLE_SPACE_PATH = "Text/space_title.xhtml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
CONTRIBUTOR = "comic-paginator"

Tag = Tuple[str, Dict[str, str], str]


@dataclass
class Content:
    title: str
    uid: str
    author: str
    publisher: str
    updated_at: str
    options: ConvertOptions
    cover: PageImage
    images: List[PageImage]
    current: int = 1
    total: int = 1
    has_title_page: bool = False
    _spine: Optional[List[SpineEntry]] = field(default=None, init=False, repr=False)

    @property
    def spine(self) -> List[SpineEntry]:
        """Spine entries; assembling them also sets each page's position."""

        if self._spine is None:
            self._spine = assemble_spine(
                self.images,
                manga=self.options.manga,
                portrait_only=self.options.portrait_only,
                reader_compatibility=self.options.reader_compatibility,
                has_title_page=self.has_title_page,
            )
        return self._spine

    def spacers(self) -> List[PageImage]:
        if self.options.portrait_only:
            return []
        return spacer_pages(self.images, self.spine)

    def metadata_tags(self) -> List[Tag]:
        opts = self.options
        tags: List[Tag] = [
            ("meta", {"property": "dcterms:modified"}, self.updated_at),
            ("meta", {"property": "schema:accessMode"}, "visual"),
            ("meta", {"property": "schema:accessModeSufficient"}, "visual"),
            ("meta", {"property": "schema:accessibilityHazard"}, "noFlashingHazard"),
            ("meta", {"property": "schema:accessibilityHazard"}, "noMotionSimulationHazard"),
            ("meta", {"property": "schema:accessibilityHazard"}, "noSoundHazard"),
            ("meta", {"name": "book-type", "content": "comic"}, ""),
            ("opf:meta", {"name": "fixed-layout", "content": "true"}, ""),
            ("opf:meta", {"name": "original-resolution", "content": opts.view_dimension}, ""),
            ("dc:title", {}, self.title),
            ("dc:identifier", {"id": "ean"}, f"urn:uuid:{self.uid}"),
            ("dc:language", {}, "en"),
            ("dc:creator", {}, self.author),
            ("dc:publisher", {}, self.publisher),
            ("dc:contributor", {}, CONTRIBUTOR),
            ("dc:date", {}, self.updated_at),
            ("meta", {"property": "rendition:layout"}, "pre-paginated"),
        ]
        if opts.portrait_only:
            tags.append(("meta", {"property": "rendition:spread"}, "none"))
            tags.append(("meta", {"property": "rendition:orientation"}, "portrait"))
        else:
            tags.append(("meta", {"property": "rendition:spread"}, "auto"))
            tags.append(("meta", {"property": "rendition:orientation"}, "auto"))

        writing_mode = "horizontal-rl" if opts.manga else "horizontal-lr"
        tags.append(("meta", {"name": "primary-writing-mode", "content": writing_mode}, ""))
        tags.append(("meta", {"name": "cover", "content": "img_cover"}, ""))

        if self.total > 1:
            tags.append(("meta", {"name": "calibre:series", "content": self.title}, ""))
            tags.append(
                ("meta", {"name": "calibre:series_index", "content": str(self.current)}, "")
            )
        return tags

    def manifest_tags(self) -> List[Tag]:
        def item(item_id: str, href: str, media_type: str, **extra: str) -> Tag:
            attrs = {"id": item_id, "href": href, "media-type": media_type}
            attrs.update(extra)
            return ("item", attrs, "")

        items: List[Tag] = [
            item("toc", "toc.xhtml", XHTML_MEDIA_TYPE, properties="nav"),
            item("css", "Text/style.css", "text/css"),
            item("page_cover", COVER_PAGE_PATH, XHTML_MEDIA_TYPE),
            item("img_cover", COVER_IMAGE_PATH, "image/jpeg"),
        ]
        if self.has_title_page:
            items.append(item(TITLE_PAGE_KEY, TITLE_PAGE_PATH, XHTML_MEDIA_TYPE))
            items.append(item("img_title", TITLE_IMAGE_PATH, "image/jpeg"))
            if not self.options.portrait_only and not self.options.reader_compatibility:
                items.append(item(TITLE_SPACE_KEY, TITLE_SPACE_PATH, XHTML_MEDIA_TYPE))

        items.extend(item(img.img_key, img.img_path, img.media_type) for img in self.images)
        items.extend(item(img.page_key, img.page_path, XHTML_MEDIA_TYPE) for img in self.images)
        items.extend(
            item(img.space_key, img.space_path, XHTML_MEDIA_TYPE) for img in self.spacers()
        )
        return items

    def spine_tags(self) -> List[Tag]:
        tags: List[Tag] = []
        for entry in self.spine:
            attrs = {"idref": entry.idref}
            if entry.properties is not None:
                attrs["properties"] = entry.properties
            tags.append(("itemref", attrs, ""))
        return tags

    def guide_tags(self) -> List[Tag]:
        return [
            ("reference", {"type": "cover", "title": "cover", "href": COVER_PAGE_PATH}, ""),
            ("reference", {"type": "text", "title": "content", "href": self.images[0].page_path}, ""),
        ]

    def to_xml(self) -> str:
        """Render the OPF package document."""

        package = ET.Element(
            "package",
            {
                "xmlns": "http://www.idpf.org/2007/opf",
                "unique-identifier": "ean",
                "version": "3.0",
                "prefix": "rendition: http://www.idpf.org/vocab/rendition/#",
            },
        )
        metadata = ET.SubElement(
            package,
            "metadata",
            {
                "xmlns:dc": "http://purl.org/dc/elements/1.1/",
                "xmlns:opf": "http://www.idpf.org/2007/opf",
            },
        )
        _add_tags(metadata, self.metadata_tags())
        _add_tags(ET.SubElement(package, "manifest"), self.manifest_tags())

        direction = "rtl" if self.options.manga else "ltr"
        spine = ET.SubElement(package, "spine", {"page-progression-direction": direction})
        _add_tags(spine, self.spine_tags())
        _add_tags(ET.SubElement(package, "guide"), self.guide_tags())

        ET.indent(package, space="  ")
        body = ET.tostring(package, encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def _add_tags(parent: ET.Element, tags: Sequence[Tag]) -> None:
    for name, attrs, value in tags:
        element = ET.SubElement(parent, name, dict(sorted(attrs.items())))
        if value:
            element.text = value
