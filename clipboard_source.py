"""Host clipboard backends."""

from __future__ import annotations

from typing import Optional

from models import ClipboardImage

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from PySide6.QtCore import QBuffer, QByteArray, QIODevice
    from PySide6.QtGui import QGuiApplication, QImage
except Exception:  # pragma: no cover
    QBuffer = None  # type: ignore
    QByteArray = None  # type: ignore
    QIODevice = None  # type: ignore
    QGuiApplication = None  # type: ignore
    QImage = None  # type: ignore


class QtClipboardSource:
    """Text and image clipboard access through the running QGuiApplication."""

    def __init__(self) -> None:
        if QGuiApplication is None:
            raise RuntimeError("PySide6 is not installed")

    def _clipboard(self):  # noqa: ANN202
        clipboard = QGuiApplication.clipboard()
        if clipboard is None:
            raise RuntimeError("no clipboard available")
        return clipboard

    def read_text(self) -> str:
        return self._clipboard().text() or ""

    def read_image(self) -> Optional[ClipboardImage]:
        image = self._clipboard().image()
        if image is None or image.isNull():
            return None
        data = QByteArray()
        buffer = QBuffer(data)
        buffer.open(QIODevice.WriteOnly)
        image.save(buffer, "PNG")
        buffer.close()
        return ClipboardImage(data=bytes(data.data()), width=image.width(), height=image.height())

    def write_text(self, text: str) -> None:
        self._clipboard().setText(text)

    def write_image(self, image: ClipboardImage) -> None:
        qimage = QImage.fromData(image.data, "PNG")
        if qimage.isNull():
            raise ValueError("image data is not a valid PNG")
        self._clipboard().setImage(qimage)


class PyperclipClipboardSource:
    """Text-only backend for systems where Qt cannot reach the clipboard."""

    def read_text(self) -> str:
        if pyperclip is None:
            raise RuntimeError("pyperclip is not installed")
        return pyperclip.paste() or ""

    def read_image(self) -> Optional[ClipboardImage]:
        return None

    def write_text(self, text: str) -> None:
        if pyperclip is None:
            raise RuntimeError("pyperclip is not installed")
        pyperclip.copy(text)

    def write_image(self, image: ClipboardImage) -> None:
        raise RuntimeError("pyperclip backend cannot hold images")


def create_clipboard_source(backend: str):  # noqa: ANN201
    if backend == "pyperclip":
        return PyperclipClipboardSource()
    return QtClipboardSource()
