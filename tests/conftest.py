import pytest

from clipvault.crypto import CryptoBox
from clipvault.locking import GuardedStore
from clipvault.models import ClipEntry, ContentType
from clipvault.settings import SettingsManager
from clipvault.storage import ContentStore

TEST_KEY = bytes(range(32))


@pytest.fixture
def crypto():
    return CryptoBox(TEST_KEY)


@pytest.fixture
def storage(crypto):
    mgr = ContentStore(crypto, db_path=":memory:")
    yield mgr
    mgr.close()


@pytest.fixture
def guarded(storage):
    return GuardedStore(storage)


@pytest.fixture
def settings(tmp_path):
    return SettingsManager(tmp_path / "settings.json")


@pytest.fixture
def make_entry():
    """Factory fixture to create ClipEntry instances for testing."""
    counter = iter(range(1, 1_000_000))

    def _make_entry(
        text: str = "hello world",
        content_type: ContentType = ContentType.TEXT,
        content: bytes | None = None,
        timestamp: int | None = None,
    ) -> ClipEntry:
        entry = ClipEntry.new(content if content is not None else text.encode("utf-8"), content_type)
        # Strictly increasing timestamps unless one is given
        entry.timestamp = timestamp if timestamp is not None else 1_700_000_000 + next(counter)
        return entry

    return _make_entry
