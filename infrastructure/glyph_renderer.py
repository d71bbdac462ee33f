"""Qt rich-text glyph rasterizer.

Watermark markup is laid out by `QTextDocument` and painted with an
antialiased `QPainter` onto a transparent image, then handed back to the
compositor as an RGBA Pillow image.
"""

from __future__ import annotations

import math
import os
import sys

from loguru import logger
from PIL import Image
from PySide6.QtCore import QRectF, Qt
from PySide6.QtGui import QGuiApplication, QImage, QPainter, QTextDocument

from core.errors import RenderError

_APP: QGuiApplication | None = None


def ensure_gui_application() -> QGuiApplication:
    """Return the running `QGuiApplication`, creating an offscreen one if needed."""
    global _APP  # pylint: disable=global-statement
    app = QGuiApplication.instance()
    if app is not None:
        return app  # type: ignore[return-value]
    if sys.platform.startswith("linux") and not (
        os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")
    ):
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    _APP = QGuiApplication([sys.argv[0] if sys.argv else "photo-stamp"])
    logger.debug("Created QGuiApplication (platform={})", _APP.platformName())
    return _APP


def qimage_to_pil(qimg: QImage) -> Image.Image:
    """Copy a `QImage` into a detached RGBA Pillow image."""
    rgba = qimg.convertToFormat(QImage.Format_RGBA8888)
    width, height = rgba.width(), rgba.height()
    data = bytes(rgba.constBits())[: rgba.sizeInBytes()]
    return Image.frombytes("RGBA", (width, height), data, "raw", "RGBA", rgba.bytesPerLine())


class QtGlyphRenderer:
    """Renders markup to a tight, transparent RGBA raster."""

    def __init__(self) -> None:
        ensure_gui_application()

    def render(self, markup: str) -> Image.Image:
        """Lay out and paint `markup`.

        Raises:
            RenderError: When the markup lays out to an empty area.
        """
        doc = QTextDocument()
        doc.setDocumentMargin(0)
        doc.setHtml(markup)
        doc.setTextWidth(doc.idealWidth())
        size = doc.size()
        width, height = math.ceil(size.width()), math.ceil(size.height())
        if width <= 0 or height <= 0 or not doc.toPlainText().strip():
            raise RenderError(f"Markup rendered to an empty area ({width}x{height})")

        qimg = QImage(width, height, QImage.Format_ARGB32_Premultiplied)
        qimg.fill(Qt.transparent)
        painter = QPainter(qimg)
        try:
            painter.setRenderHint(QPainter.Antialiasing, True)
            painter.setRenderHint(QPainter.TextAntialiasing, True)
            doc.drawContents(painter, QRectF(0, 0, width, height))
        finally:
            painter.end()
        return qimage_to_pil(qimg)
