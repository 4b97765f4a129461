"""
Command-line interface for comic-paginator.

This file focuses on parsing arguments, merging them with YAML config and
dispatching to the real work in convert.py.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

from . import __version__
from .config import (
    DEFAULT_CONVERT,
    build_options,
    deep_merge,
    dump_default_convert_yaml,
    extract_convert_section,
    load_yaml,
)
from .utils import UserError, normalize_path


TOP_LEVEL_EXAMPLES = """Examples:
  python -m comic_paginator convert --input "book.cbz"
  python -m comic_paginator convert --input "pages" --output "out/book.epub" --manga --auto_split_double_page
  python -m comic_paginator convert --dump-default-config
"""

CONVERT_EXAMPLES = """Examples:
  python -m comic_paginator convert --input "book.cbz" --output "book.epub" --overwrite
  python -m comic_paginator convert --input "book.pdf" --dpi 300 --format png --no-grayscale
  python -m comic_paginator convert --input "pages" --portrait_only --auto_rotate
  python -m comic_paginator convert --input "book.cbz" --config "configs/kobo.yaml" --dry-run
"""

# (config key, value type, help). Booleans become --key / --no-key switches.
_CONVERT_FLAGS: List[Tuple[str, type, str]] = [
    ("title", str, "Book title (default: input name)."),
    ("author", str, "Book author."),
    ("publisher", str, "Book publisher."),
    ("manga", bool, "Right-to-left reading order."),
    ("has_cover", bool, "The first page is the cover."),
    ("title_page", bool, "Add a title page built from the cover."),
    ("portrait_only", bool, "Portrait layout only, no spreads."),
    ("reader_compatibility", bool, "Center the title page instead of using a spacer (Apple Books)."),
    ("crop", bool, "Crop blank margins."),
    ("crop_left", int, "Percent of content pixels tolerated on a cropped left line."),
    ("crop_up", int, "Percent of content pixels tolerated on a cropped top line."),
    ("crop_right", int, "Percent of content pixels tolerated on a cropped right line."),
    ("crop_bottom", int, "Percent of content pixels tolerated on a cropped bottom line."),
    ("crop_limit", int, "Maximum crop per edge in percent (0 = unlimited)."),
    ("crop_skip_if_limit_reached", bool, "Do not crop at all when an edge hits the limit."),
    ("no_blank_image", bool, "Drop pages with no content."),
    ("auto_rotate", bool, "Rotate double pages a quarter turn."),
    ("auto_split_double_page", bool, "Split double pages into two pages."),
    ("keep_double_page_if_split", bool, "Keep the whole double page next to its halves."),
    ("keep_split_double_page_aspect", bool, "Crop before cutting so both halves share one scale."),
    ("auto_contrast", bool, "Stretch contrast automatically."),
    ("contrast", int, "Contrast change in percent (-100..100)."),
    ("brightness", int, "Brightness change in percent (-100..100)."),
    ("resize", bool, "Resize pages to fit the viewport."),
    ("view_width", int, "Viewport width in pixels."),
    ("view_height", int, "Viewport height in pixels."),
    ("grayscale", bool, "Convert pages to grayscale."),
    ("grayscale_mode", int, "0=desaturate, 1=average, 2=luminance."),
    ("format", str, "Output image format: jpeg or png."),
    ("quality", int, "JPEG quality (1-100)."),
    ("workers", int, "Worker threads (0 = CPU count)."),
    ("dpi", int, "Render DPI for PDF input."),
    ("overwrite", bool, "Overwrite an existing EPUB."),
    ("manifest", str, "Manifest path (default: <output>.manifest.json)."),
]

CONVERT_KEYS = set(DEFAULT_CONVERT.keys())


def _build_effective_config(args: argparse.Namespace) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_CONVERT, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        effective = deep_merge(effective, extract_convert_section(load_yaml(config_path)))

    raw_args = vars(args)
    cli_overrides = {key: raw_args[key] for key in CONVERT_KEYS if key in raw_args}
    return deep_merge(effective, cli_overrides), config_path


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comic-paginator",
        description="Convert comic pages (folder, CBZ, PDF) into a fixed-layout EPUB.",
        epilog=TOP_LEVEL_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress non-error console logs.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug-level console logs.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser(
        "convert",
        help="Convert a comic into an EPUB.",
        epilog=CONVERT_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    convert.add_argument(
        "--input",
        default=argparse.SUPPRESS,
        help="Folder of images, .cbz/.zip or .pdf (required unless --dump-default-config).",
    )
    convert.add_argument(
        "--output",
        default=argparse.SUPPRESS,
        help="Output EPUB path (default: input name with .epub).",
    )
    convert.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config for convert settings.",
    )
    convert.add_argument(
        "--dump-default-config",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Print default convert YAML config and exit.",
    )
    convert.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="List pages without converting or writing files.",
    )

    for key, value_type, help_text in _CONVERT_FLAGS:
        if value_type is bool:
            convert.add_argument(
                f"--{key}",
                action=argparse.BooleanOptionalAction,
                default=argparse.SUPPRESS,
                help=help_text,
            )
        else:
            convert.add_argument(
                f"--{key}",
                type=value_type,
                default=argparse.SUPPRESS,
                help=help_text,
            )

    return parser


def _command_string(argv: list[str]) -> str:
    """Reconstruct a command string for the manifest."""

    return subprocess.list2cmdline(argv)


def _command_argv_for_manifest(argv: list[str] | None) -> list[str]:
    """Choose argv used to record manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def _run_convert(args: argparse.Namespace, argv: list[str] | None, verbosity: str) -> int:
    if getattr(args, "dump_default_config", False):
        print(dump_default_convert_yaml())
        return 0

    if not hasattr(args, "input"):
        raise UserError("convert requires --input unless --dump-default-config is used.")

    effective_cfg, config_path = _build_effective_config(args)
    overwrite = effective_cfg.pop("overwrite")
    manifest_value = effective_cfg.pop("manifest")
    options = build_options(effective_cfg)

    input_path = normalize_path(args.input)
    output_path = (
        normalize_path(args.output)
        if hasattr(args, "output")
        else _default_output(input_path)
    )
    manifest_path = (
        normalize_path(str(manifest_value))
        if manifest_value
        else output_path.with_name(f"{output_path.stem}.manifest.json")
    )

    manifest_options = deep_merge(effective_cfg, {})
    manifest_options["version"] = __version__
    manifest_options["verbosity"] = verbosity
    if config_path is not None:
        manifest_options["config_path"] = str(config_path)

    from .convert import convert_comic

    convert_comic(
        input_path=input_path,
        output_path=output_path,
        options=options,
        overwrite=bool(overwrite),
        manifest_path=manifest_path,
        command_string=_command_string(_command_argv_for_manifest(argv)),
        manifest_options=manifest_options,
    )
    return 0


def _default_output(input_path: Path) -> Path:
    from .convert import default_output_path

    return default_output_path(input_path)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        verbosity = _verbosity_from_args(args)
        if args.command == "convert":
            return _run_convert(args, argv, verbosity)
        raise UserError("Unknown command. Use --help for usage.")
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
