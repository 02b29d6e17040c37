"""Platform clipboard readers and writers used by the watcher."""
import sys
import time

import pyperclip
from PIL import Image, ImageGrab

from clipvault import imaging
from clipvault.capture import ClipboardImage, ClipboardText
from clipvault.exceptions import EncodeDecodeError, TransientReadError
from clipvault.models import ContentType

CHANGE_COUNT_INTERVAL = 0.1  # seconds between NSPasteboard.changeCount reads

HTML_TYPE = "public.html"
RTF_TYPE = "public.rtf"


class ClipboardBackend:
    """Interface shared by the platform backends."""

    def read_text(self) -> ClipboardText | None:
        raise NotImplementedError

    def read_image(self) -> ClipboardImage | None:
        raise NotImplementedError

    def write_text(self, text: str) -> None:
        raise NotImplementedError

    def write_image(self, width: int, height: int, rgba: bytes) -> None:
        raise NotImplementedError

    def wait_for_change(self, timeout: float) -> bool:
        """Block until the OS reports a clipboard change or ``timeout`` elapses.

        Backends without change notifications raise NotImplementedError, which
        makes the watcher fall back to polling.
        """
        raise NotImplementedError


def _image_to_signal(data: bytes) -> ClipboardImage:
    try:
        width, height, rgba = imaging.png_to_rgba(data)
    except EncodeDecodeError as e:
        raise TransientReadError(str(e)) from e
    return ClipboardImage(width=width, height=height, rgba=rgba)


class MacPasteboard(ClipboardBackend):
    """NSPasteboard backend. ``changeCount`` serves as the change notification."""

    def __init__(self):
        from AppKit import NSPasteboard

        self._pasteboard = NSPasteboard.generalPasteboard()
        self._last_change_count = self._pasteboard.changeCount()

    def wait_for_change(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            current_count = self._pasteboard.changeCount()
            if current_count != self._last_change_count:
                self._last_change_count = current_count
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(CHANGE_COUNT_INTERVAL)

    def read_text(self) -> ClipboardText | None:
        from AppKit import NSFilenamesPboardType, NSPasteboardTypeString

        types = self._pasteboard.types()
        if types is None:
            return None

        if NSFilenamesPboardType in types:
            filenames = self._pasteboard.propertyListForType_(NSFilenamesPboardType)
            if filenames:
                return ClipboardText("\n".join(str(f) for f in filenames), ContentType.FILE)

        if NSPasteboardTypeString in types:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
            if text:
                return ClipboardText(str(text), ContentType.TEXT)

        for pb_type, content_type in ((HTML_TYPE, ContentType.HTML), (RTF_TYPE, ContentType.RTF)):
            if pb_type in types:
                data = self._pasteboard.dataForType_(pb_type)
                if data is not None:
                    return ClipboardText(bytes(data).decode("utf-8", errors="replace"), content_type)
        return None

    def read_image(self) -> ClipboardImage | None:
        from AppKit import NSPasteboardTypePNG, NSPasteboardTypeTIFF

        types = self._pasteboard.types()
        if types is None:
            return None

        for img_type in (NSPasteboardTypePNG, NSPasteboardTypeTIFF):
            if img_type in types:
                data = self._pasteboard.dataForType_(img_type)
                if data is not None:
                    return _image_to_signal(bytes(data))
        return None

    def write_text(self, text: str) -> None:
        from AppKit import NSPasteboardTypeString

        self._pasteboard.clearContents()
        self._pasteboard.setString_forType_(text, NSPasteboardTypeString)

    def write_image(self, width: int, height: int, rgba: bytes) -> None:
        from AppKit import NSPasteboardTypePNG
        from Foundation import NSData

        png = imaging.rgba_to_png(width, height, rgba)
        self._pasteboard.clearContents()
        self._pasteboard.setData_forType_(NSData.dataWithBytes_length_(png, len(png)), NSPasteboardTypePNG)


class GenericPasteboard(ClipboardBackend):
    """pyperclip for text and Pillow's ImageGrab for images. Polling only."""

    def read_text(self) -> ClipboardText | None:
        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            raise TransientReadError(f"Clipboard text unavailable: {e}") from e
        if not text:
            return None
        return ClipboardText(text, ContentType.TEXT)

    def read_image(self) -> ClipboardImage | None:
        try:
            grabbed = ImageGrab.grabclipboard()
        except (OSError, NotImplementedError) as e:
            raise TransientReadError(f"Clipboard image unavailable: {e}") from e
        if not isinstance(grabbed, Image.Image):
            return None
        img = grabbed.convert("RGBA")
        return ClipboardImage(width=img.width, height=img.height, rgba=img.tobytes())

    def write_text(self, text: str) -> None:
        pyperclip.copy(text)

    def write_image(self, width: int, height: int, rgba: bytes) -> None:
        raise NotImplementedError("Copying images is only supported on macOS")


def select_backend() -> ClipboardBackend:
    if sys.platform == "darwin":
        return MacPasteboard()
    return GenericPasteboard()
