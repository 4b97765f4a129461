"""
Module entrypoint.

Allows running the tool with `python -m comic_paginator`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
