import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from clipvault import imaging
from clipvault.config import MAX_TEXT_SIZE, SELF_COPY_GRACE
from clipvault.exceptions import ClipVaultError
from clipvault.locking import GuardedStore
from clipvault.models import ClipEntry, ContentType
from clipvault.settings import SettingsManager
from clipvault.storage import ContentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipboardText:
    """Text-like clipboard value, tagged with the richest format the reader found."""

    text: str
    content_type: ContentType = ContentType.TEXT


@dataclass(frozen=True)
class ClipboardImage:
    """Raw clipboard image as an RGBA pixel buffer."""

    width: int
    height: int
    rgba: bytes


ClipboardSignal = ClipboardText | ClipboardImage


class SelfCopyMarker:
    """Remembers the text we just wrote to the clipboard for a short grace period."""

    def __init__(self, grace: float = SELF_COPY_GRACE):
        self._grace = grace
        self._lock = threading.Lock()
        self._text: str | None = None

    @property
    def current(self) -> str | None:
        with self._lock:
            return self._text

    def mark(self, text: str) -> None:
        with self._lock:
            self._text = text
        # The expiry clears unconditionally; a newer mark may be cleared early.
        timer = threading.Timer(self._grace, self.clear)
        timer.daemon = True
        timer.start()

    def clear(self) -> None:
        with self._lock:
            self._text = None
        logger.debug("Cleared self-copy marker")

    def matches(self, text: str) -> bool:
        with self._lock:
            return self._text is not None and self._text == text


class CaptureController:
    def __init__(
        self,
        store: GuardedStore,
        marker: SelfCopyMarker,
        settings: SettingsManager,
        on_capture: Callable[[ClipEntry], None] | None = None,
    ):
        self._store = store
        self._marker = marker
        self._settings = settings
        self._on_capture = on_capture

    @property
    def marker(self) -> SelfCopyMarker:
        return self._marker

    def capture(self, signal: ClipboardSignal) -> ClipEntry | None:
        """Persist a watcher signal. Returns the stored entry, or None when nothing was stored."""
        if isinstance(signal, ClipboardText):
            entry = self._build_text_entry(signal)
        elif isinstance(signal, ClipboardImage):
            entry = self._build_image_entry(signal)
        else:
            raise TypeError(f"Unsupported clipboard signal: {signal!r}")

        if entry is None:
            return None
        return entry if self._persist(entry) else None

    def _build_text_entry(self, signal: ClipboardText) -> ClipEntry | None:
        if signal.content_type == ContentType.IMAGE:
            raise ValueError("Text signals cannot carry image content")
        if self._marker.matches(signal.text):
            logger.info("Skipping self-copied text (%d chars)", len(signal.text))
            return None

        payload = signal.text.encode("utf-8")
        if len(payload) > MAX_TEXT_SIZE:
            logger.warning("Text too large (%d bytes), skipping", len(payload))
            return None

        logger.info("%s clipboard changed: %d chars", signal.content_type.value.capitalize(), len(signal.text))
        return ClipEntry.new(payload, signal.content_type)

    def _build_image_entry(self, signal: ClipboardImage) -> ClipEntry:
        logger.info("Image clipboard changed: %dx%d, %d bytes", signal.width, signal.height, len(signal.rgba))
        store_original = self._settings.get().store_original_image
        content = imaging.transcode(signal.width, signal.height, signal.rgba, store_original)
        return ClipEntry.new(content, ContentType.IMAGE)

    def _persist(self, entry: ClipEntry) -> bool:
        try:
            inserted = self._store.call(ContentStore.insert, entry)
        except ClipVaultError:
            logger.exception("Failed to save clipboard item")
            return False
        if inserted and self._on_capture:
            self._on_capture(entry)
        return inserted
