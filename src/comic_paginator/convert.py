"""
Convert one comic source into a fixed-layout EPUB.

Why this module exists:
- Keeps the orchestration (load, transform, layout, write) separate from CLI
  parsing.
- Every run ends with a manifest, whether it succeeded or not.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional
import uuid

from .config import ConvertOptions
from .content import Content
from .epub import write_epub
from .manifest import ManifestRecorder
from .model import PageImage
from .processor import ImageProcessor
from .sources import load_source
from .storage import ImageStorage
from .utils import NoImagesFoundError, UserError, ensure_dir, ensure_file_path


def _updated_at() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _storage_path(output_path: Path) -> Path:
    return output_path.with_name(f"{output_path.name}.images.tmp")


def default_output_path(input_path: Path) -> Path:
    """`book.cbz` -> `book.epub`; a folder `book/` -> `book.epub` beside it."""

    if input_path.is_dir():
        return input_path.parent / f"{input_path.name}.epub"
    return input_path.with_suffix(".epub")


def build_content(
    pages: List[PageImage],
    options: ConvertOptions,
    title: str,
) -> Content:
    """Wrap the assembled pages into the package descriptor."""

    return Content(
        title=title,
        uid=str(uuid.uuid4()),
        author=options.author,
        publisher=options.publisher,
        updated_at=_updated_at(),
        options=options,
        cover=pages[0],
        images=pages,
        has_title_page=options.title_page,
    )


def convert_comic(
    input_path: Path,
    output_path: Path,
    options: ConvertOptions,
    overwrite: bool,
    manifest_path: Path,
    command_string: str,
    manifest_options: Dict[str, object],
) -> None:
    """
    Convert a folder, CBZ/ZIP or PDF of comic pages into an EPUB.

    Errors are recorded in the manifest and re-raised as UserError.
    """

    recorder = ManifestRecorder(
        tool_name="comic-paginator",
        tool_version=str(manifest_options.get("version", "0.0.0")),
        command=command_string,
        options=manifest_options,
        inputs={"input": str(input_path)},
        outputs={"epub": str(output_path), "manifest": str(manifest_path)},
        dry_run=options.dry_run,
        verbosity=str(manifest_options.get("verbosity", "normal")),
    )

    storage: Optional[ImageStorage] = None
    storage_path = _storage_path(output_path)
    pages: List[PageImage] = []
    error_message: str | None = None
    summary: Dict[str, object] = {
        "source_pages": 0,
        "pages": 0,
        "double_pages": 0,
        "spacer_pages": 0,
        "output": str(output_path),
    }

    try:
        ensure_file_path(output_path, "Output EPUB")
        if output_path.exists() and not overwrite and not options.dry_run:
            raise UserError(f"Output already exists: {output_path}. Use --overwrite to replace it.")

        count, tasks = load_source(input_path, dpi=options.dpi)
        summary["source_pages"] = count
        recorder.inputs["source_pages"] = count
        if count == 0:
            raise NoImagesFoundError(f"No images found in {input_path}.")

        if options.dry_run:
            pages = ImageProcessor(options, None, recorder).load(tasks, count)
            recorder.log(f"[dry-run] Would convert {len(pages)} page(s) -> {output_path}")
            summary["pages"] = len(pages)
            return

        ensure_dir(output_path.parent, dry_run=False)
        storage = ImageStorage(storage_path, options.image_format)
        pages = ImageProcessor(options, storage, recorder).load(tasks, count)

        title = options.title or input_path.stem
        content = build_content(pages, options, title)
        file_count = write_epub(output_path, content, storage_path, options.quality)

        summary["pages"] = len(pages)
        summary["double_pages"] = sum(1 for page in pages if page.is_double_page)
        summary["spacer_pages"] = len(content.spacers())
        summary["files"] = file_count
        recorder.add_action(action="package", status="written", output=str(output_path))
        recorder.log(f"Wrote {len(pages)} page(s) -> {output_path}")
    except Exception as exc:  # pragma: no cover - includes validation and codec errors
        if isinstance(exc, UserError):
            error_message = str(exc)
        else:
            error_message = f"Failed to convert {input_path}: {exc}"
        recorder.log(error_message, level="error")
        recorder.add_action(action="convert", status="error", error=error_message)
        if isinstance(exc, UserError):
            raise
        raise UserError(error_message) from exc
    finally:
        if storage is not None:
            storage.close()
        if storage_path.exists():
            storage_path.unlink()
        summary["status"] = "error" if error_message else "ok"
        if error_message is not None:
            summary["error"] = error_message
        recorder.write_manifest(manifest_path, summary)
