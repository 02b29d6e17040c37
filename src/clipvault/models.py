import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from clipvault.utils import compute_hash, get_image_dimensions, truncate_text


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    HTML = "html"
    RTF = "rtf"

    @property
    def is_textual(self) -> bool:
        return self is not ContentType.IMAGE


@dataclass
class ClipEntry:
    id: str
    content: bytes
    content_type: ContentType
    timestamp: int
    is_pinned: bool = False
    pin_order: int | None = None

    @classmethod
    def new(cls, content: bytes, content_type: ContentType) -> "ClipEntry":
        """Build a freshly captured, unpinned entry stamped with the current time."""
        return cls(
            id=str(uuid.uuid4()),
            content=content,
            content_type=content_type,
            timestamp=int(time.time()),
        )

    @property
    def content_hash(self) -> str:
        return compute_hash(self.content)

    @property
    def text(self) -> str | None:
        if not self.content_type.is_textual:
            return None
        return self.content.decode("utf-8", errors="replace")


def make_preview(entry: ClipEntry, max_len: int) -> str:
    """One-line label for menus and listings."""
    if entry.content_type == ContentType.IMAGE:
        width, height = get_image_dimensions(entry.content)
        return f"[Image: {width}x{height}]" if width > 0 else "[Image]"
    if entry.content_type == ContentType.FILE:
        paths = [line for line in entry.text.splitlines() if line.strip()]
        if not paths:
            return "[File]"
        if len(paths) == 1:
            return truncate_text(f"File: {Path(paths[0]).name}", max_len)
        return truncate_text(f"{len(paths)} files: {Path(paths[0]).name}, ...", max_len)
    if entry.content_type in (ContentType.TEXT, ContentType.HTML, ContentType.RTF):
        return truncate_text(entry.text, max_len)
    raise ValueError(f"Unhandled content type: {entry.content_type!r}")
