"""
Assemble the final EPUB container.

The worker pool has already encoded every page into the image storage zip;
this module copies those images into the package and adds the text
resources around them.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Dict

from PIL import Image

from . import templates
from .content import (
    COVER_IMAGE_PATH,
    COVER_PAGE_PATH,
    TITLE_IMAGE_PATH,
    TITLE_PAGE_PATH,
    TITLE_SPACE_PATH,
    Content,
)
from .storage import encode_image, iter_stored_images
from .utils import PipelineError


def _cover_image(content: Content, stored: Dict[str, bytes]) -> Image.Image:
    """The retained cover buffer, or the cover decoded back from storage."""

    cover = content.cover
    if cover.image is not None:
        return cover.image
    data = stored.get(cover.epub_img_path)
    if data is None:
        raise PipelineError(f"Cover image {cover.epub_img_path} is missing from storage.")
    with Image.open(io.BytesIO(data)) as opened:
        return opened.copy()


def write_epub(output_path: Path, content: Content, storage_path: Path, quality: int) -> int:
    """
    Write the EPUB and return the number of files it contains.

    `mimetype` goes first and uncompressed, as the container format requires.
    """

    opts = content.options
    view_width, view_height = opts.view_width, opts.view_height
    opf = content.to_xml()
    stored = dict(iter_stored_images(storage_path))

    cover_image = _cover_image(content, stored)
    cover_bytes = encode_image(cover_image, "jpeg", quality)

    with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            zipfile.ZipInfo("mimetype"),
            "application/epub+zip",
            compress_type=zipfile.ZIP_STORED,
        )
        archive.writestr("META-INF/container.xml", templates.CONTAINER_XML)

        # Only kept pages go in; dropped blank pages stay behind in storage.
        for page in content.images:
            data = stored.get(page.epub_img_path)
            if data is None:
                raise PipelineError(f"Image {page.epub_img_path} is missing from storage.")
            archive.writestr(page.epub_img_path, data, compress_type=zipfile.ZIP_STORED)
        archive.writestr(f"OEBPS/{COVER_IMAGE_PATH}", cover_bytes, compress_type=zipfile.ZIP_STORED)

        archive.writestr(
            f"OEBPS/{COVER_PAGE_PATH}",
            templates.page_xhtml(
                "Cover",
                f"../{COVER_IMAGE_PATH}",
                cover_image.width,
                cover_image.height,
                view_width,
                view_height,
            ),
        )

        if content.has_title_page:
            archive.writestr(
                f"OEBPS/{TITLE_IMAGE_PATH}", cover_bytes, compress_type=zipfile.ZIP_STORED
            )
            archive.writestr(
                f"OEBPS/{TITLE_PAGE_PATH}",
                templates.page_xhtml(
                    content.title,
                    f"../{TITLE_IMAGE_PATH}",
                    cover_image.width,
                    cover_image.height,
                    view_width,
                    view_height,
                ),
            )
            if not opts.portrait_only and not opts.reader_compatibility:
                archive.writestr(
                    f"OEBPS/{TITLE_SPACE_PATH}",
                    templates.blank_xhtml("Blank", view_width, view_height),
                )

        for page in content.images:
            archive.writestr(
                f"OEBPS/{page.page_path}",
                templates.page_xhtml(
                    f"Page {page.id}_p{page.part}",
                    f"../{page.img_path}",
                    page.width,
                    page.height,
                    view_width,
                    view_height,
                    page.position,
                ),
            )
        for page in content.spacers():
            archive.writestr(
                f"OEBPS/{page.space_path}",
                templates.blank_xhtml("Blank", view_width, view_height),
            )

        archive.writestr("OEBPS/Text/style.css", templates.STYLE_CSS)
        archive.writestr(
            "OEBPS/toc.xhtml",
            templates.nav_xhtml(content.title, content.images[0].page_path),
        )
        archive.writestr("OEBPS/content.opf", opf)
        return len(archive.infolist())
