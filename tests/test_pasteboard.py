import io
from unittest.mock import patch

import pyperclip
import pytest
from PIL import Image

from clipvault.exceptions import TransientReadError
from clipvault.models import ContentType
from clipvault.pasteboard import ClipboardBackend, GenericPasteboard, _image_to_signal, select_backend


@pytest.fixture
def generic():
    return GenericPasteboard()


class TestClipboardBackend:
    def test_no_change_notifications_by_default(self):
        with pytest.raises(NotImplementedError):
            ClipboardBackend().wait_for_change(0.1)


class TestGenericPasteboard:
    @patch("clipvault.pasteboard.pyperclip.paste", return_value="copied")
    def test_read_text(self, _paste, generic):
        value = generic.read_text()
        assert value.text == "copied"
        assert value.content_type == ContentType.TEXT

    @patch("clipvault.pasteboard.pyperclip.paste", return_value="")
    def test_empty_text(self, _paste, generic):
        assert generic.read_text() is None

    @patch("clipvault.pasteboard.pyperclip.paste", side_effect=pyperclip.PyperclipException("no clipboard"))
    def test_unavailable_text(self, _paste, generic):
        with pytest.raises(TransientReadError):
            generic.read_text()

    @patch("clipvault.pasteboard.ImageGrab.grabclipboard")
    def test_read_image(self, mock_grab, generic):
        mock_grab.return_value = Image.new("RGB", (3, 2), (1, 2, 3))
        value = generic.read_image()
        assert (value.width, value.height) == (3, 2)
        assert len(value.rgba) == 3 * 2 * 4

    @patch("clipvault.pasteboard.ImageGrab.grabclipboard", return_value=["/tmp/file.png"])
    def test_non_image_clipboard(self, _grab, generic):
        assert generic.read_image() is None

    @patch("clipvault.pasteboard.ImageGrab.grabclipboard", side_effect=NotImplementedError)
    def test_image_grab_unsupported(self, _grab, generic):
        with pytest.raises(TransientReadError):
            generic.read_image()

    @patch("clipvault.pasteboard.pyperclip.copy")
    def test_write_text(self, mock_copy, generic):
        generic.write_text("back")
        mock_copy.assert_called_once_with("back")

    def test_write_image_unsupported(self, generic):
        with pytest.raises(NotImplementedError):
            generic.write_image(1, 1, b"\x00" * 4)

    def test_polling_only(self, generic):
        with pytest.raises(NotImplementedError):
            generic.wait_for_change(0.1)


class TestImageToSignal:
    def test_png(self):
        buf = io.BytesIO()
        Image.new("RGBA", (5, 4)).save(buf, format="PNG")
        signal = _image_to_signal(buf.getvalue())
        assert (signal.width, signal.height) == (5, 4)

    def test_garbage_is_transient(self):
        with pytest.raises(TransientReadError):
            _image_to_signal(b"not an image")


class TestSelectBackend:
    def test_generic_off_macos(self):
        with patch("clipvault.pasteboard.sys.platform", "linux"):
            assert isinstance(select_backend(), GenericPasteboard)
