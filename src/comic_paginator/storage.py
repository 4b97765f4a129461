"""
Temporary zip storage for encoded page images.

Workers encode and add pages concurrently; the zip handle itself is not
thread-safe, so writes are serialized with a lock. Encoding happens outside
the lock.
"""

from __future__ import annotations

import io
import threading
import zipfile
from pathlib import Path
from typing import Iterator, Optional, Tuple

from PIL import Image

from .utils import PipelineError


def encode_image(image: Image.Image, image_format: str, quality: int) -> bytes:
    """Encode an image as JPEG or PNG bytes."""

    buffer = io.BytesIO()
    if image_format == "png":
        image.save(buffer, format="PNG", optimize=True)
    else:
        if image.mode not in {"L", "RGB", "CMYK"}:
            image = image.convert("L" if image.mode in {"LA", "I", "I;16"} else "RGB")
        image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class ImageStorage:
    """Write-once store of encoded images, keyed by their package path."""

    def __init__(self, path: Path, image_format: str) -> None:
        self.path = path
        self.image_format = image_format
        self._lock = threading.Lock()
        self._zip: Optional[zipfile.ZipFile] = zipfile.ZipFile(path, "w", zipfile.ZIP_STORED)

    def add(self, name: str, image: Image.Image, quality: int) -> None:
        """Encode and store one image. Raises PipelineError on failure."""

        try:
            data = encode_image(image, self.image_format, quality)
        except (OSError, ValueError) as exc:
            raise PipelineError(f"Failed to encode {name}: {exc}") from exc

        with self._lock:
            if self._zip is None:
                raise PipelineError(f"Image storage {self.path} is closed.")
            try:
                self._zip.writestr(name, data)
            except (OSError, ValueError) as exc:
                raise PipelineError(f"Failed to store {name}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._zip is not None:
                self._zip.close()
                self._zip = None


def iter_stored_images(path: Path) -> Iterator[Tuple[str, bytes]]:
    """Yield (name, bytes) for every image in a closed storage zip."""

    with zipfile.ZipFile(path, "r") as archive:
        for info in archive.infolist():
            yield info.filename, archive.read(info)
