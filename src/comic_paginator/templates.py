"""
Text resources of the EPUB package: pages, spacers, nav, container, style.

Page images are placed inside a fixed viewport; a page on the left of a
spread hugs its right edge (the binding) and a page on the right hugs its
left edge, so both halves of a spread meet in the middle.
"""

from __future__ import annotations

from typing import Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

from .model import POSITION_LEFT, POSITION_RIGHT


CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

STYLE_CSS = """body {
  margin: 0;
  padding: 0;
  background-color: white;
}
div.page {
  position: relative;
  margin: 0;
  padding: 0;
  overflow: hidden;
}
img.page {
  position: absolute;
  margin: 0;
  padding: 0;
}
"""


def fit_inside(width: int, height: int, view_width: int, view_height: int) -> Tuple[int, int]:
    """Largest size with the image's aspect ratio that fits the viewport."""

    if width <= 0 or height <= 0:
        return view_width, view_height
    scale = min(view_width / width, view_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def image_style(
    width: int,
    height: int,
    view_width: int,
    view_height: int,
    position: Optional[str],
) -> str:
    """Absolute placement of a page image inside the viewport."""

    fit_width, fit_height = fit_inside(width, height, view_width, view_height)
    top = (view_height - fit_height) // 2
    if position == POSITION_LEFT:
        left = view_width - fit_width
    elif position == POSITION_RIGHT:
        left = 0
    else:
        left = (view_width - fit_width) // 2
    return f"width:{fit_width}px; height:{fit_height}px; top:{top}px; left:{left}px;"


def _document(title: str, view_width: int, view_height: int, body: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
  <title>{escape(title)}</title>
  <link href="style.css" type="text/css" rel="stylesheet"/>
  <meta name="viewport" content="width={view_width}, height={view_height}"/>
</head>
<body>
{body}
</body>
</html>
"""


def page_xhtml(
    title: str,
    image_href: str,
    width: int,
    height: int,
    view_width: int,
    view_height: int,
    position: Optional[str] = None,
) -> str:
    """A page holding a single image, positioned for its spread side."""

    style = image_style(width, height, view_width, view_height, position)
    body = (
        f'<div class="page" style="width:{view_width}px; height:{view_height}px;">\n'
        f"  <img class=\"page\" src={quoteattr(image_href)} alt={quoteattr(title)} "
        f"style={quoteattr(style)}/>\n"
        "</div>"
    )
    return _document(title, view_width, view_height, body)


def blank_xhtml(title: str, view_width: int, view_height: int) -> str:
    """An empty spacer page."""

    body = f'<div class="page" style="width:{view_width}px; height:{view_height}px;"></div>'
    return _document(title, view_width, view_height, body)


def nav_xhtml(title: str, first_page_href: str) -> str:
    """Navigation document with a single entry pointing at the first page."""

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
  <title>{escape(title)}</title>
</head>
<body>
  <nav epub:type="toc" id="toc">
    <ol>
      <li><a href={quoteattr(first_page_href)}>{escape(title)}</a></li>
    </ol>
  </nav>
</body>
</html>
"""
