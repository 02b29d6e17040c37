import logging
import shutil
from pathlib import Path

from clipvault.config import DB_FILENAME, KEY_FILENAME
from clipvault.exceptions import MigrationError

logger = logging.getLogger(__name__)

DATA_FILES = (
    DB_FILENAME,
    f"{DB_FILENAME}-shm",
    f"{DB_FILENAME}-wal",
    KEY_FILENAME,
)
PROBE_FILENAME = ".clipvault_write_test"


def migrate_data(source: str | Path, destination: str | Path, delete_old: bool = False) -> list[Path]:
    """Copy the data files from ``source`` to ``destination``.

    Every file is size-checked after copying. Source files are only removed
    (when ``delete_old``) once all of them made it across and the key is
    present at the destination. Returns the destination paths written.
    """
    src = Path(source).expanduser()
    dst = Path(destination).expanduser()
    logger.info("Starting data migration from %s to %s", src, dst)

    if not src.exists():
        raise MigrationError(f"Source directory does not exist: {src}")
    if src.resolve() == dst.resolve():
        raise MigrationError("Source and destination are the same")

    try:
        dst.mkdir(parents=True, exist_ok=True)
        probe = dst / PROBE_FILENAME
        probe.write_text("test")
        probe.unlink()
    except OSError as e:
        raise MigrationError(f"Destination directory is not writable: {e}") from e

    copied = []
    for filename in DATA_FILES:
        source_file = src / filename
        if not source_file.exists():
            continue
        dest_file = dst / filename
        logger.info("Copying %s to %s", source_file, dest_file)
        try:
            shutil.copy2(source_file, dest_file)
            source_size = source_file.stat().st_size
            dest_size = dest_file.stat().st_size
        except OSError as e:
            raise MigrationError(f"Failed to copy {filename}: {e}") from e
        if source_size != dest_size:
            raise MigrationError(
                f"File size mismatch for {filename}: source {source_size} bytes, dest {dest_size} bytes"
            )
        copied.append(dest_file)

    if not (dst / KEY_FILENAME).exists():
        raise MigrationError("Migration failed: encryption key not found at destination")

    logger.info("Data migration successful")

    if delete_old:
        logger.info("Deleting old data files from %s", src)
        for filename in DATA_FILES:
            old_file = src / filename
            if old_file.exists():
                try:
                    old_file.unlink()
                except OSError as e:
                    raise MigrationError(f"Failed to remove old file {filename}: {e}") from e
        try:
            src.rmdir()
        except OSError as e:
            logger.warning("Could not remove old directory (may not be empty): %s", e)

    return copied
