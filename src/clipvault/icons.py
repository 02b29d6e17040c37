import logging
import threading
from collections import OrderedDict

from PIL import Image

from clipvault.config import ICON_CACHE_SIZE, TRAY_ICON_SIZE
from clipvault.exceptions import EncodeDecodeError
from clipvault.imaging import decode_image, encode_png

logger = logging.getLogger(__name__)


def render_icon(content: bytes, size: int = TRAY_ICON_SIZE) -> bytes:
    """Scale an image so its shorter side is ``size`` pixels and return PNG bytes."""
    img = decode_image(content)
    scale = size / min(img.width, img.height)
    target = (max(1, int(img.width * scale)), max(1, int(img.height * scale)))
    return encode_png(img.resize(target, Image.Resampling.LANCZOS))


class IconCache:
    """Bounded LRU of rendered tray icons keyed by entry id."""

    def __init__(self, capacity: int = ICON_CACHE_SIZE, size: int = TRAY_ICON_SIZE):
        self._capacity = capacity
        self._size = size
        self._icons: OrderedDict[str, bytes] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._icons)

    def get_or_create(self, entry_id: str, content: bytes) -> bytes | None:
        with self._lock:
            icon = self._icons.get(entry_id)
            if icon is not None:
                self._icons.move_to_end(entry_id)
                logger.debug("Icon cache hit for %s", entry_id)
                return icon

        logger.debug("Icon cache miss for %s, decoding...", entry_id)
        try:
            icon = render_icon(content, self._size)
        except EncodeDecodeError as e:
            logger.warning("Failed to decode image for clip %s: %s", entry_id, e)
            return None

        with self._lock:
            self._icons[entry_id] = icon
            self._icons.move_to_end(entry_id)
            while len(self._icons) > self._capacity:
                self._icons.popitem(last=False)
        return icon

    def clear(self) -> None:
        with self._lock:
            self._icons.clear()
        logger.info("Icon cache cleared")
