import hashlib
import struct
from pathlib import Path


def compute_hash(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def truncate_text(text: str, max_len: int) -> str:
    """Collapse whitespace and shorten long text to ``start...end``."""
    single_line = collapse_whitespace(text)
    if len(single_line) <= max_len:
        return single_line
    if max_len <= 3:
        return single_line[:max_len]
    start_len = max_len * 2 // 3
    end_len = max_len - start_len - 3
    end = single_line[len(single_line) - end_len:] if end_len > 0 else ""
    return single_line[:start_len] + "..." + end


def ensure_dirs(data_dir: Path) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)


def get_image_dimensions(png_bytes: bytes) -> tuple[int, int]:
    if len(png_bytes) < 24 or png_bytes[:8] != b"\x89PNG\r\n\x1a\n":
        return (0, 0)
    width = struct.unpack(">I", png_bytes[16:20])[0]
    height = struct.unpack(">I", png_bytes[20:24])[0]
    return (width, height)
