"""
Tests for the OPF descriptor and the EPUB container.
"""

from __future__ import annotations

import importlib
import unittest
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import replace

from PIL import Image

from helpers_cli import workspace_temp_dir

config_mod = importlib.import_module("comic_paginator.config")
content_mod = importlib.import_module("comic_paginator.content")
epub_mod = importlib.import_module("comic_paginator.epub")
model_mod = importlib.import_module("comic_paginator.model")
storage_mod = importlib.import_module("comic_paginator.storage")
utils_mod = importlib.import_module("comic_paginator.utils")

ConvertOptions = config_mod.ConvertOptions
Content = content_mod.Content
PageImage = model_mod.PageImage

NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
}
BASE = ConvertOptions(workers=1)


def _pages(count: int, doubles=()) -> list:
    return [
        PageImage(
            id=index,
            part=0,
            name=f"p{index}",
            width=60,
            height=90,
            is_double_page=index in doubles,
            image=Image.new("L", (60, 90), 0) if index == 0 else None,
        )
        for index in range(count)
    ]


def _content(pages, options=BASE, has_title_page=False) -> Content:
    return Content(
        title="Test Book",
        uid="1234",
        author="Someone",
        publisher="Press",
        updated_at="2024-01-01T00:00:00Z",
        options=options,
        cover=pages[0],
        images=pages,
        has_title_page=has_title_page,
    )


def _parse(content: Content) -> ET.Element:
    return ET.fromstring(content.to_xml().encode("utf-8"))


class ContentOpfTests(unittest.TestCase):
    def test_metadata(self) -> None:
        root = _parse(_content(_pages(2)))
        metadata = root.find("opf:metadata", NS)
        self.assertEqual(metadata.find("dc:title", NS).text, "Test Book")
        self.assertEqual(metadata.find("dc:identifier", NS).text, "urn:uuid:1234")
        self.assertEqual(metadata.find("dc:creator", NS).text, "Someone")

        properties = {
            meta.get("property"): meta.text
            for meta in metadata.findall("opf:meta", NS)
            if meta.get("property")
        }
        self.assertEqual(properties["rendition:layout"], "pre-paginated")
        self.assertEqual(properties["rendition:spread"], "auto")

    def test_manga_reads_right_to_left(self) -> None:
        root = _parse(_content(_pages(2), replace(BASE, manga=True)))
        spine = root.find("opf:spine", NS)
        self.assertEqual(spine.get("page-progression-direction"), "rtl")

    def test_spine_lists_pages_and_spacers(self) -> None:
        content = _content(_pages(3, doubles={1}))
        root = _parse(content)

        refs = [item.get("idref") for item in root.find("opf:spine", NS)]
        self.assertEqual(refs, ["page_0_p0", "space_1_p0", "page_1_p0", "page_2_p0", "space_2_p0"])

        manifest_ids = {item.get("id") for item in root.find("opf:manifest", NS)}
        for ref in refs:
            self.assertIn(ref, manifest_ids)
        self.assertIn("img_1_p0", manifest_ids)
        self.assertIn("img_cover", manifest_ids)
        self.assertEqual([page.id for page in content.spacers()], [1, 2])

    def test_portrait_only(self) -> None:
        content = _content(_pages(3), replace(BASE, portrait_only=True))
        root = _parse(content)
        properties = {
            meta.get("property"): meta.text
            for meta in root.find("opf:metadata", NS).findall("opf:meta", NS)
            if meta.get("property")
        }
        self.assertEqual(properties["rendition:spread"], "none")
        for itemref in root.find("opf:spine", NS):
            self.assertIsNone(itemref.get("properties"))
        self.assertEqual(content.spacers(), [])

    def test_title_page_items(self) -> None:
        root = _parse(_content(_pages(2), has_title_page=True))
        manifest_ids = {item.get("id") for item in root.find("opf:manifest", NS)}
        self.assertIn("page_title", manifest_ids)
        self.assertIn("space_title", manifest_ids)

        compat = _parse(
            _content(_pages(2), replace(BASE, reader_compatibility=True), has_title_page=True)
        )
        compat_ids = {item.get("id") for item in compat.find("opf:manifest", NS)}
        self.assertIn("page_title", compat_ids)
        self.assertNotIn("space_title", compat_ids)

    def test_series_metadata(self) -> None:
        content = _content(_pages(2))
        content.current, content.total = 2, 3
        names = {
            meta.get("name"): meta.get("content")
            for meta in _parse(content).find("opf:metadata", NS).findall("opf:meta", NS)
            if meta.get("name")
        }
        self.assertEqual(names["calibre:series_index"], "2")


class EpubContainerTests(unittest.TestCase):
    def _store(self, path, pages) -> None:
        storage = storage_mod.ImageStorage(path, "jpeg")
        for page in pages:
            storage.add(page.epub_img_path, Image.new("L", (60, 90), 0), 85)
        storage.close()

    def test_container_layout(self) -> None:
        with workspace_temp_dir("test_epub") as tmp:
            pages = _pages(3, doubles={1})
            storage_path = tmp / "book.images.tmp"
            self._store(storage_path, pages)
            output = tmp / "book.epub"

            count = epub_mod.write_epub(output, _content(pages), storage_path, 85)

            with zipfile.ZipFile(output) as archive:
                infos = archive.infolist()
                names = archive.namelist()
                self.assertEqual(infos[0].filename, "mimetype")
                self.assertEqual(infos[0].compress_type, zipfile.ZIP_STORED)
                self.assertEqual(archive.read("mimetype"), b"application/epub+zip")
                self.assertEqual(count, len(names))
                for expected in (
                    "META-INF/container.xml",
                    "OEBPS/content.opf",
                    "OEBPS/toc.xhtml",
                    "OEBPS/Text/style.css",
                    "OEBPS/Text/cover.xhtml",
                    "OEBPS/Images/cover.jpeg",
                    "OEBPS/Images/img_2_p0.jpeg",
                    "OEBPS/Text/page_1_p0.xhtml",
                    "OEBPS/Text/space_1_p0.xhtml",
                ):
                    self.assertIn(expected, names)

    def test_missing_image_fails(self) -> None:
        with workspace_temp_dir("test_epub") as tmp:
            pages = _pages(2)
            storage_path = tmp / "book.images.tmp"
            self._store(storage_path, pages[:1])
            with self.assertRaises(utils_mod.PipelineError):
                epub_mod.write_epub(tmp / "book.epub", _content(pages), storage_path, 85)

    def test_cover_decoded_from_storage_when_released(self) -> None:
        with workspace_temp_dir("test_epub") as tmp:
            pages = _pages(2)
            pages[0].release()
            storage_path = tmp / "book.images.tmp"
            self._store(storage_path, pages)
            epub_mod.write_epub(tmp / "book.epub", _content(pages), storage_path, 85)
            with zipfile.ZipFile(tmp / "book.epub") as archive:
                self.assertIn("OEBPS/Images/cover.jpeg", archive.namelist())


class StorageTests(unittest.TestCase):
    def test_closed_storage_rejects_writes(self) -> None:
        with workspace_temp_dir("test_storage") as tmp:
            storage = storage_mod.ImageStorage(tmp / "s.zip", "png")
            storage.add("a.png", Image.new("RGB", (2, 2)), 85)
            storage.close()
            storage.close()
            with self.assertRaises(utils_mod.PipelineError):
                storage.add("b.png", Image.new("RGB", (2, 2)), 85)
            self.assertEqual([name for name, _ in storage_mod.iter_stored_images(tmp / "s.zip")], ["a.png"])

    def test_jpeg_encoding_handles_alpha(self) -> None:
        data = storage_mod.encode_image(Image.new("RGBA", (4, 4)), "jpeg", 80)
        self.assertTrue(data.startswith(b"\xff\xd8"))


if __name__ == "__main__":
    unittest.main()
