"""
Read source pages from a folder, a CBZ/ZIP archive or a PDF.

Every loader returns the page count up front (for progress) and a lazy
iterator of Task values, so only a few decoded pages are alive at a time.
Index 0 is the first page in natural order, which is the cover when the
source has one.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Iterator, List, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageOps

from .model import Task
from .utils import UserError, ensure_exists, natural_key


IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"}
ARCHIVE_SUFFIXES = {".cbz", ".zip"}


def _is_image_name(name: str) -> bool:
    path = Path(name)
    if any(part.startswith(".") or part == "__MACOSX" for part in path.parts):
        return False
    return path.suffix.lower() in IMAGE_SUFFIXES


def decode_image(data: io.BytesIO | Path, name: str) -> Image.Image:
    """Decode and EXIF-orient one image, fully loaded in memory."""

    try:
        with Image.open(data) as opened:
            oriented = ImageOps.exif_transpose(opened)
            image = oriented.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise UserError(f"Failed to read image {name}: {exc}") from exc
    image.load()
    return image


def _directory_names(root: Path) -> List[Path]:
    files = [
        path
        for path in root.rglob("*")
        if path.is_file() and _is_image_name(path.relative_to(root).as_posix())
    ]
    return sorted(files, key=lambda path: natural_key(path.relative_to(root).as_posix()))


def _iter_directory(root: Path, files: List[Path]) -> Iterator[Task]:
    for index, path in enumerate(files):
        name = path.relative_to(root).as_posix()
        yield Task(index=index, name=name, image=decode_image(path, name))


def _archive_names(path: Path) -> List[str]:
    try:
        with zipfile.ZipFile(path) as archive:
            names = [
                info.filename
                for info in archive.infolist()
                if not info.is_dir() and _is_image_name(info.filename)
            ]
    except (OSError, zipfile.BadZipFile) as exc:
        raise UserError(f"Failed to open archive {path}: {exc}") from exc
    return sorted(names, key=natural_key)


def _iter_archive(path: Path, names: List[str]) -> Iterator[Task]:
    with zipfile.ZipFile(path) as archive:
        for index, name in enumerate(names):
            data = io.BytesIO(archive.read(name))
            yield Task(index=index, name=name, image=decode_image(data, name))


def _pdf_page_count(path: Path) -> int:
    try:
        with fitz.open(str(path)) as doc:
            return doc.page_count
    except (RuntimeError, ValueError) as exc:
        raise UserError(f"Failed to open PDF {path}: {exc}") from exc


def _iter_pdf(path: Path, dpi: int) -> Iterator[Task]:
    # PDFs are 72 DPI by default.
    zoom = dpi / 72.0
    matrix = fitz.Matrix(zoom, zoom)
    with fitz.open(str(path)) as doc:
        for index in range(doc.page_count):
            pixmap = doc.load_page(index).get_pixmap(matrix=matrix, alpha=False)
            image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
            yield Task(index=index, name=f"page {index + 1}", image=image)


def load_source(path: Path, dpi: int = 200) -> Tuple[int, Iterator[Task]]:
    """
    Open a source and return (page count, lazy task iterator).

    Supported: a folder of images, a .cbz/.zip archive, a .pdf.
    """

    ensure_exists(path, "Input")

    if path.is_dir():
        files = _directory_names(path)
        return len(files), _iter_directory(path, files)

    suffix = path.suffix.lower()
    if suffix in ARCHIVE_SUFFIXES:
        names = _archive_names(path)
        return len(names), _iter_archive(path, names)
    if suffix == ".pdf":
        return _pdf_page_count(path), _iter_pdf(path, dpi)

    raise UserError(
        f"Unsupported input {path}. Use a folder of images, a .cbz/.zip archive or a .pdf."
    )
