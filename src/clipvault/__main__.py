import argparse
import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path

from clipvault.config import DATA_DIR, LOG_PATH, MENU_DISPLAY_COUNT, PID_FILENAME, PREVIEW_LENGTH
from clipvault.exceptions import ClipVaultError, MigrationError
from clipvault.migration import migrate_data
from clipvault.models import ClipEntry, make_preview
from clipvault.service import ClipboardService, resolve_data_dir
from clipvault.settings import SettingsManager
from clipvault.utils import ensure_dirs

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(verbose: bool, to_file: bool) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if to_file:
        ensure_dirs(DATA_DIR)
        handlers.insert(0, logging.FileHandler(LOG_PATH))
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO if to_file else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def format_entry(entry: ClipEntry) -> str:
    when = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
    pin = "*" if entry.is_pinned else " "
    return f"{pin} {entry.id[:8]}  {when}  [{entry.content_type.value}] {make_preview(entry, PREVIEW_LENGTH)}"


def write_pid_file(data_dir: Path) -> Path:
    path = data_dir / PID_FILENAME
    path.write_text(str(os.getpid()))
    return path


def running_pid(data_dir: Path) -> int | None:
    """Pid of a live `clipvault run` using ``data_dir``, or None."""
    try:
        pid = int((data_dir / PID_FILENAME).read_text().strip())
    except (OSError, ValueError):
        return None
    if os.name != "posix":
        # No signal-0 probe here; trust the file
        return pid
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return None
    except PermissionError:
        return pid
    return pid


def run_app() -> int:
    """Run the watcher, with the menu bar tray on macOS."""
    service = ClipboardService.open()
    pid_path = write_pid_file(resolve_data_dir(service.settings.get()))
    try:
        service.start_watching()

        if sys.platform == "darwin":
            from clipvault.app import ClipVaultApp

            ClipVaultApp(service).run()
            return 0

        logger.info("No tray available on %s; watching clipboard headless (Ctrl+C to stop)", sys.platform)
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        return 0
    finally:
        service.shutdown()
        pid_path.unlink(missing_ok=True)


def show_recent(limit: int) -> int:
    service = ClipboardService.open()
    try:
        entries = service.get_recent(limit)
    finally:
        service.shutdown()
    if not entries:
        print("(No clipboard history)")
    for entry in entries:
        print(format_entry(entry))
    return 0


def show_search(query: str) -> int:
    service = ClipboardService.open()
    try:
        results = service.search(query)
    finally:
        service.shutdown()
    if not results:
        print(f'No results for "{query}"')
        return 1
    for entry in results:
        print(format_entry(entry))
    return 0


def clear_history(keep_pinned: bool) -> int:
    service = ClipboardService.open()
    try:
        removed = service.clear_non_pinned() if keep_pinned else service.clear_all()
    finally:
        service.shutdown()
    print(f"Removed {removed} entries.")
    return 0


def migrate(destination: str, delete_old: bool) -> int:
    """Move the data directory and remember the new location."""
    settings = SettingsManager()
    source = resolve_data_dir(settings.load())
    dest = Path(destination).expanduser().resolve()
    pid = running_pid(source)
    if pid is not None:
        raise MigrationError(f"ClipVault is running (pid {pid}) on {source}; quit it before migrating")
    migrate_data(source, dest, delete_old=delete_old)
    settings.update(custom_data_path=str(dest))
    settings.save()
    print(f"Migrated data from {source} to {dest}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="clipvault",
        description="ClipVault - Encrypted clipboard history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  (none), run   Watch the clipboard (menu bar tray on macOS)
  recent        List recent entries
  search QUERY  Search text entries
  clear         Clear history
  migrate DEST  Move the data directory to DEST (quit `clipvault run` first)

Examples:
  clipvault recent -n 20
  clipvault clear --keep-pinned
  clipvault migrate ~/Dropbox/clipvault --delete-old
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Watch the clipboard")

    recent_parser = subparsers.add_parser("recent", help="List recent entries")
    recent_parser.add_argument("-n", "--limit", type=int, default=MENU_DISPLAY_COUNT, help="Number of entries")

    search_parser = subparsers.add_parser("search", help="Search text entries")
    search_parser.add_argument("query", help="Case-insensitive substring to look for")

    clear_parser = subparsers.add_parser("clear", help="Clear history")
    clear_parser.add_argument("--keep-pinned", action="store_true", help="Keep pinned entries")

    migrate_parser = subparsers.add_parser("migrate", help="Move the data directory")
    migrate_parser.add_argument("destination", help="New data directory")
    migrate_parser.add_argument("--delete-old", action="store_true", help="Remove the old files after copying")

    args = parser.parse_args()
    configure_logging(args.verbose, to_file=args.command in (None, "run"))

    try:
        if args.command == "recent":
            sys.exit(show_recent(args.limit))
        elif args.command == "search":
            sys.exit(show_search(args.query))
        elif args.command == "clear":
            sys.exit(clear_history(args.keep_pinned))
        elif args.command == "migrate":
            sys.exit(migrate(args.destination, args.delete_old))
        else:
            sys.exit(run_app())
    except ClipVaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
