"""
=============================================================================
CONTENT TYPE DETECTION
=============================================================================

The server knows exactly three content types and falls back to text/plain
for everything else:

    ┌───────────────┬──────────────────────────┐
    │ Path contains │ Content-Type             │
    ├───────────────┼──────────────────────────┤
    │ .html         │ text/html                │
    │ .css          │ text/css                 │
    │ .js           │ application/javascript   │
    │ (anything)    │ text/plain               │
    └───────────────┴──────────────────────────┘

The match is a SUBSTRING match on the whole path, not a suffix match, and
the rules are tried in the order above:

    "index.html"          → text/html
    "notes.html.txt"      → text/html       (contains ".html")
    "app.json"            → application/javascript  (contains ".js")
    "README"              → text/plain

=============================================================================
"""

from pathlib import Path
from typing import Union


# Ordered: the first marker found in the path wins.
CONTENT_TYPES = (
    (".html", "text/html"),
    (".css", "text/css"),
    (".js", "application/javascript"),
)

DEFAULT_CONTENT_TYPE = "text/plain"


def content_type_for(path: Union[str, Path]) -> str:
    """
    Get the Content-Type for a requested path.

    Args:
        path: Requested path (relative or absolute, str or Path).

    Returns:
        The mapped content type, or text/plain.

    Examples:
        >>> content_type_for("index.html")
        'text/html'
        >>> content_type_for("static/site.css")
        'text/css'
        >>> content_type_for("data.bin")
        'text/plain'
    """
    path = str(path)
    for marker, content_type in CONTENT_TYPES:
        if marker in path:
            return content_type
    return DEFAULT_CONTENT_TYPE
