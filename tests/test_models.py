import io

import pytest
from PIL import Image

from clipvault.models import ClipEntry, ContentType, make_preview


def _png(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height)).save(buf, format="PNG")
    return buf.getvalue()


class TestClipEntry:
    def test_new_entry_defaults(self):
        entry = ClipEntry.new(b"hello", ContentType.TEXT)
        assert entry.is_pinned is False
        assert entry.pin_order is None
        assert entry.timestamp > 0
        assert len(entry.id) == 36

    def test_ids_are_unique(self):
        assert ClipEntry.new(b"x", ContentType.TEXT).id != ClipEntry.new(b"x", ContentType.TEXT).id

    def test_text_decodes_utf8(self):
        assert ClipEntry.new("héllo".encode(), ContentType.TEXT).text == "héllo"

    def test_text_replaces_invalid_bytes(self):
        assert ClipEntry.new(b"\xffok", ContentType.TEXT).text == "�ok"

    def test_image_has_no_text(self):
        assert ClipEntry.new(b"\x89PNG", ContentType.IMAGE).text is None

    def test_hash_follows_content(self):
        a = ClipEntry.new(b"same", ContentType.TEXT)
        b = ClipEntry.new(b"same", ContentType.HTML)
        assert a.content_hash == b.content_hash

    def test_content_type_values(self):
        assert ContentType("rtf") is ContentType.RTF
        assert ContentType.IMAGE.is_textual is False
        assert ContentType.FILE.is_textual is True


class TestMakePreview:
    def test_text(self):
        entry = ClipEntry.new(b"line one\nline two", ContentType.TEXT)
        assert make_preview(entry, 50) == "line one line two"

    def test_long_text_truncated(self):
        entry = ClipEntry.new(b"x" * 200, ContentType.TEXT)
        assert len(make_preview(entry, 50)) == 50

    def test_image_with_dimensions(self):
        entry = ClipEntry.new(_png(800, 600), ContentType.IMAGE)
        assert make_preview(entry, 50) == "[Image: 800x600]"

    def test_undecodable_image(self):
        entry = ClipEntry.new(b"raw bytes", ContentType.IMAGE)
        assert make_preview(entry, 50) == "[Image]"

    def test_single_file(self):
        entry = ClipEntry.new(b"/Users/me/report.pdf", ContentType.FILE)
        assert make_preview(entry, 50) == "File: report.pdf"

    def test_multiple_files(self):
        entry = ClipEntry.new(b"/tmp/a.txt\n/tmp/b.txt\n/tmp/c.txt", ContentType.FILE)
        assert make_preview(entry, 50) == "3 files: a.txt, ..."

    def test_empty_file_list(self):
        assert make_preview(ClipEntry.new(b"\n", ContentType.FILE), 50) == "[File]"

    @pytest.mark.parametrize("content_type", [ContentType.HTML, ContentType.RTF])
    def test_rich_text(self, content_type):
        assert make_preview(ClipEntry.new(b"<b>hi</b>", content_type), 50) == "<b>hi</b>"
