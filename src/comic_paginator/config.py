"""
Configuration helpers for YAML-backed conversion options.

Precedence is defaults < YAML config < explicit CLI flags; the merged mapping
is validated once and frozen into ConvertOptions before any image work starts.
"""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .utils import UserError, validate_int_range, validate_positive_int


DEFAULT_CONVERT: dict[str, Any] = {
    "title": None,
    "author": "Unknown",
    "publisher": "",
    "manga": False,
    "has_cover": True,
    "title_page": False,
    "portrait_only": False,
    "reader_compatibility": False,
    "crop": True,
    "crop_left": 1,
    "crop_up": 1,
    "crop_right": 1,
    "crop_bottom": 3,
    "crop_limit": 0,
    "crop_skip_if_limit_reached": False,
    "no_blank_image": True,
    "auto_rotate": False,
    "auto_split_double_page": False,
    "keep_double_page_if_split": True,
    "keep_split_double_page_aspect": True,
    "auto_contrast": False,
    "contrast": 0,
    "brightness": 0,
    "resize": True,
    "view_width": 1236,
    "view_height": 1648,
    "grayscale": True,
    "grayscale_mode": 0,
    "format": "jpeg",
    "quality": 85,
    "workers": 0,
    "dpi": 200,
    "overwrite": False,
    "dry_run": False,
    "manifest": None,
}

IMAGE_FORMATS = {"jpeg", "png"}

_BOOL_KEYS = {
    "manga",
    "has_cover",
    "title_page",
    "portrait_only",
    "reader_compatibility",
    "crop",
    "crop_skip_if_limit_reached",
    "no_blank_image",
    "auto_rotate",
    "auto_split_double_page",
    "keep_double_page_if_split",
    "keep_split_double_page_aspect",
    "auto_contrast",
    "resize",
    "grayscale",
    "overwrite",
    "dry_run",
}


@dataclass(frozen=True)
class ConvertOptions:
    """Validated, immutable options shared by every pipeline stage."""

    title: Optional[str] = None
    author: str = "Unknown"
    publisher: str = ""
    manga: bool = False
    has_cover: bool = True
    title_page: bool = False
    portrait_only: bool = False
    reader_compatibility: bool = False
    crop_enabled: bool = True
    crop_left: int = 1
    crop_up: int = 1
    crop_right: int = 1
    crop_bottom: int = 3
    crop_limit: int = 0
    crop_skip_if_limit_reached: bool = False
    no_blank_image: bool = True
    auto_rotate: bool = False
    auto_split_double_page: bool = False
    keep_double_page_if_split: bool = True
    keep_split_double_page_aspect: bool = True
    auto_contrast: bool = False
    contrast: int = 0
    brightness: int = 0
    resize: bool = True
    view_width: int = 1236
    view_height: int = 1648
    grayscale: bool = True
    grayscale_mode: int = 0
    image_format: str = "jpeg"
    quality: int = 85
    workers: int = 1
    dpi: int = 200
    dry_run: bool = False

    @property
    def view_dimension(self) -> str:
        return f"{self.view_width}x{self.view_height}"

    def workers_pct(self) -> int:
        """PNG encoding is cheap enough to use every worker; JPEG uses half."""

        return 100 if self.image_format == "png" else 50


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    if not path.exists():
        raise UserError(f"Config file not found: {path}")
    if not path.is_file():
        raise UserError(f"Config file is not a file: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(key for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_convert_section(loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Support either root config keys or a `convert:` wrapper."""

    if "convert" in loaded:
        section = loaded["convert"]
        if not isinstance(section, dict):
            raise UserError("config.convert must be a mapping/object.")
        validate_keys(section, set(DEFAULT_CONVERT), "config.convert")
        return section

    validate_keys(loaded, set(DEFAULT_CONVERT), "config")
    return loaded


def dump_default_convert_yaml() -> str:
    """Serialize wrapped convert defaults as YAML."""

    return yaml.safe_dump({"convert": DEFAULT_CONVERT}, sort_keys=False).rstrip()


def require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean value from config/CLI merge output."""

    if isinstance(value, bool):
        return value
    raise UserError(f"{key} must be true or false.")


def _resolve_workers(value: Any) -> int:
    workers = validate_int_range(value, 0, 1024, "workers")
    if workers == 0:
        return os.cpu_count() or 1
    return workers


def build_options(cfg: Dict[str, Any]) -> ConvertOptions:
    """
    Validate a merged config mapping and freeze it into ConvertOptions.

    Every range check lives here so the pipeline can trust its input.
    """

    validate_keys(cfg, set(DEFAULT_CONVERT), "config")
    merged = deep_merge(DEFAULT_CONVERT, cfg)

    for key in _BOOL_KEYS:
        require_bool(merged[key], key)

    for key in ("crop_left", "crop_up", "crop_right", "crop_bottom", "crop_limit"):
        validate_int_range(merged[key], 0, 100, key)
    validate_int_range(merged["contrast"], -100, 100, "contrast")
    validate_int_range(merged["brightness"], -100, 100, "brightness")
    validate_int_range(merged["grayscale_mode"], 0, 2, "grayscale_mode")
    validate_int_range(merged["quality"], 1, 100, "quality")
    validate_positive_int(merged["view_width"], "view_width")
    validate_positive_int(merged["view_height"], "view_height")
    validate_positive_int(merged["dpi"], "dpi")

    image_format = str(merged["format"]).lower()
    if image_format not in IMAGE_FORMATS:
        raise UserError("format must be one of: jpeg, png.")

    title = merged["title"]
    return ConvertOptions(
        title=str(title) if title is not None else None,
        author=str(merged["author"]),
        publisher=str(merged["publisher"] or ""),
        manga=merged["manga"],
        has_cover=merged["has_cover"],
        title_page=merged["title_page"],
        portrait_only=merged["portrait_only"],
        reader_compatibility=merged["reader_compatibility"],
        crop_enabled=merged["crop"],
        crop_left=merged["crop_left"],
        crop_up=merged["crop_up"],
        crop_right=merged["crop_right"],
        crop_bottom=merged["crop_bottom"],
        crop_limit=merged["crop_limit"],
        crop_skip_if_limit_reached=merged["crop_skip_if_limit_reached"],
        no_blank_image=merged["no_blank_image"],
        auto_rotate=merged["auto_rotate"],
        auto_split_double_page=merged["auto_split_double_page"],
        keep_double_page_if_split=merged["keep_double_page_if_split"],
        keep_split_double_page_aspect=merged["keep_split_double_page_aspect"],
        auto_contrast=merged["auto_contrast"],
        contrast=merged["contrast"],
        brightness=merged["brightness"],
        resize=merged["resize"],
        view_width=merged["view_width"],
        view_height=merged["view_height"],
        grayscale=merged["grayscale"],
        grayscale_mode=merged["grayscale_mode"],
        image_format=image_format,
        quality=merged["quality"],
        workers=_resolve_workers(merged["workers"]),
        dpi=merged["dpi"],
        dry_run=merged["dry_run"],
    )
