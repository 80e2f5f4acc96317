"""
Request handlers.

    static.StaticFileHandler  GET:  serve a file from the document root
    form.FormHandler          POST: store a title/content submission
"""

from .static import StaticFileHandler, PathEscapesRoot
from .form import FormHandler

__all__ = [
    "StaticFileHandler",
    "PathEscapesRoot",
    "FormHandler",
]
