import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from clipvault.capture import CaptureController, ClipboardImage, ClipboardText
from clipvault.config import POLL_INTERVAL
from clipvault.exceptions import TransientReadError
from clipvault.pasteboard import ClipboardBackend
from clipvault.utils import compute_hash

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClipboardWatcher:
    """Watches the clipboard on a background thread and feeds changes to the controller.

    Change notifications from the backend are preferred. If the backend has none,
    or the notification loop fails, the watcher polls every ``poll_interval``
    seconds instead. Text and image are tracked independently.
    """

    def __init__(self, backend: ClipboardBackend, controller: CaptureController, poll_interval: float = POLL_INTERVAL):
        self._backend = backend
        self._controller = controller
        self._poll_interval = poll_interval
        self._last_text: str | None = None
        self._last_image_hash: str | None = None
        self._failing: set[str] = set()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.mode: str | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="clipboard-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            self._run_notifications()
        except Exception:
            logger.exception("Clipboard change notifications failed")
            logger.warning("Falling back to polling mode...")
            self._run_polling()

    def _run_notifications(self) -> None:
        self.mode = "notify"
        logger.info("Clipboard monitoring started (event-driven)")
        while not self._stop_event.is_set():
            if self._backend.wait_for_change(self._poll_interval):
                self.check_once()

    def _run_polling(self) -> None:
        self.mode = "poll"
        logger.info("Clipboard monitoring started (polling every %.0f ms)", self._poll_interval * 1000)
        while not self._stop_event.is_set():
            self.check_once()
            self._stop_event.wait(self._poll_interval)

    def check_once(self) -> int:
        """Run one read-compare-capture cycle. Returns the number of stored entries."""
        return self._check_text() + self._check_image()

    def _read(self, modality: str, reader: Callable[[], T | None]) -> T | None:
        """Call ``reader``, logging a failure only when the modality starts failing."""
        try:
            value = reader()
        except Exception as e:
            if modality in self._failing:
                logger.debug("Clipboard %s still unavailable: %s", modality, e)
            elif isinstance(e, TransientReadError):
                logger.warning("Clipboard %s unavailable: %s", modality, e)
            else:
                logger.exception("Error reading clipboard %s", modality)
            self._failing.add(modality)
            return None
        if modality in self._failing:
            self._failing.discard(modality)
            logger.info("Clipboard %s readable again", modality)
        return value

    def _check_text(self) -> int:
        value = self._read("text", self._backend.read_text)
        if value is None or not value.text or value.text == self._last_text:
            return 0

        # Advance the baseline even for self-copies and failed captures
        self._last_text = value.text
        return self._dispatch(value)

    def _check_image(self) -> int:
        value = self._read("image", self._backend.read_image)
        if value is None or not value.rgba:
            return 0

        image_hash = compute_hash(value.rgba)
        if image_hash == self._last_image_hash:
            return 0
        self._last_image_hash = image_hash
        return self._dispatch(value)

    def _dispatch(self, value: ClipboardText | ClipboardImage) -> int:
        try:
            entry = self._controller.capture(value)
        except Exception:
            logger.exception("Error capturing clipboard change")
            return 0
        return 1 if entry is not None else 0
