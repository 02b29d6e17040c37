import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable

import rumps

from clipvault import __version__
from clipvault.exceptions import ClipVaultError
from clipvault.models import ClipEntry, ContentType, make_preview
from clipvault.service import ClipboardService

logger = logging.getLogger(__name__)

ENTRY_KEY_PREFIX = "clipvault_entry_"
REFRESH_INTERVAL = 0.5  # seconds between checks for a pending menu rebuild
SEARCH_TIMEOUT = 5.0

STORE_ERRORS = (ClipVaultError, FutureTimeoutError)


@dataclass
class MenuItemSpec:
    """Specification for a menu item, separating logic from rumps rendering."""

    title: str
    callback: Callable | None = None
    icon_data: bytes | None = None
    entry_id: str | None = None


class ClipVaultApp(rumps.App):
    def __init__(self, service: ClipboardService):
        super().__init__("ClipVault", title="📋", quit_button=None)
        self._service = service
        self._entry_ids: dict[str, str] = {}
        self._dirty = threading.Event()
        self._service.add_listener(self._on_service_event)
        self._build_menu()

    def _on_service_event(self, _event: str) -> None:
        # Called from worker threads; the menu is rebuilt on the main thread
        self._dirty.set()

    @rumps.timer(REFRESH_INTERVAL)
    def _refresh_if_dirty(self, _sender) -> None:
        if self._dirty.is_set():
            self._dirty.clear()
            try:
                self._build_menu()
            except STORE_ERRORS:
                logger.exception("Error refreshing menu")

    def _build_menu(self) -> None:
        self.menu.clear()
        self._entry_ids.clear()
        self._render_menu_specs(self._compute_menu_specs())

    def _compute_menu_specs(self) -> list[MenuItemSpec | None]:
        """Compute menu item specifications. Pure logic, no rumps dependency."""
        prefs = self._service.settings.get()
        specs: list[MenuItemSpec | None] = [
            MenuItemSpec(f"ClipVault v{__version__} - Clipboard History"),
            None,
            MenuItemSpec("Search...", callback=self._on_search),
            None,
        ]

        pinned = self._service.get_pinned()[: prefs.max_pinned_in_tray]
        if pinned:
            specs.append(MenuItemSpec("📌 Pinned"))
            specs.extend(self._compute_entry_spec(e) for e in pinned)
            specs.append(None)

        recent = [e for e in self._service.get_recent(limit=prefs.max_recent_in_tray + len(pinned)) if not e.is_pinned]
        recent = recent[: prefs.max_recent_in_tray]
        if not recent and not pinned:
            specs.append(MenuItemSpec("(No clipboard history)"))
        else:
            specs.extend(self._compute_entry_spec(e) for e in recent)

        specs.extend([
            None,
            MenuItemSpec("Clear History", callback=self._on_clear),
            MenuItemSpec("Clear All (including pinned)", callback=self._on_clear_all),
            None,
            MenuItemSpec("Quit ClipVault", callback=self._on_quit),
        ])
        return specs

    def _compute_entry_spec(self, entry: ClipEntry) -> MenuItemSpec:
        key = f"{ENTRY_KEY_PREFIX}{entry.id}"
        self._entry_ids[key] = entry.id
        max_len = self._service.settings.get().tray_text_length
        spec = MenuItemSpec(title=make_preview(entry, max_len), callback=self._on_entry_click, entry_id=entry.id)
        if entry.content_type == ContentType.IMAGE:
            spec.icon_data = self._service.icon_cache.get_or_create(entry.id, entry.content)
        return spec

    def _render_menu_specs(self, specs: list[MenuItemSpec | None]) -> None:
        self.menu = [self._render_single_spec(spec) for spec in specs]

    def _render_single_spec(self, spec: MenuItemSpec | None) -> rumps.MenuItem | None:
        if spec is None:
            return None

        item = rumps.MenuItem(spec.title, callback=spec.callback)
        if spec.icon_data:
            _set_icon_from_png(item, spec.icon_data)
        if spec.entry_id is not None:
            item._id = f"{ENTRY_KEY_PREFIX}{spec.entry_id}"
        return item

    def _on_entry_click(self, sender) -> None:
        entry_id = self._entry_ids.get(getattr(sender, "_id", ""))
        if entry_id is None:
            return

        if _option_key_held():
            self._on_pin_toggle(entry_id)
            return

        try:
            self._service.copy_to_clipboard(entry_id)
        except (ClipVaultError, NotImplementedError):
            logger.exception("Error copying entry to clipboard")
            rumps.notification("ClipVault", "", "Could not copy to clipboard", sound=False)
            return
        rumps.notification("ClipVault", "", "Copied to clipboard", sound=False)

    def _on_pin_toggle(self, entry_id: str) -> None:
        try:
            entry = self._service.get_by_id(entry_id)
            self._service.set_pinned(entry_id, not entry.is_pinned)
        except ClipVaultError:
            logger.exception("Error toggling pin")
            return
        rumps.notification("ClipVault", "", "Unpinned" if entry.is_pinned else "Pinned", sound=False)

    def _on_search(self, _sender) -> None:
        response = rumps.Window(
            message="Search clipboard history:",
            title="ClipVault Search",
            default_text="",
            ok="Search",
            cancel="Cancel",
            dimensions=(300, 24),
        ).run()

        if response.clicked and response.text.strip():
            query = response.text.strip()
            try:
                results = self._service.search(query, timeout=SEARCH_TIMEOUT)
            except STORE_ERRORS:
                logger.exception("Error searching clipboard history")
                rumps.alert("ClipVault Search", "Search failed. Please try again.")
                return
            if not results:
                rumps.alert("ClipVault Search", f'No results for "{query}"')
                return

            self.menu.clear()
            self._entry_ids.clear()
            self._render_menu_specs(self._compute_search_results_specs(query, results))

    def _compute_search_results_specs(self, query: str, results: list[ClipEntry]) -> list[MenuItemSpec | None]:
        specs: list[MenuItemSpec | None] = [
            MenuItemSpec(f'Search: "{query}" ({len(results)} results)'),
            None,
            MenuItemSpec("Show All", callback=lambda _: self._build_menu()),
            None,
        ]
        specs.extend(self._compute_entry_spec(e) for e in results)
        specs.extend([
            None,
            MenuItemSpec("Quit ClipVault", callback=self._on_quit),
        ])
        return specs

    def _on_clear(self, _sender) -> None:
        if rumps.alert("ClipVault", "Clear clipboard history? Pinned items are kept.", ok="Clear", cancel="Cancel"):
            self._clear(self._service.clear_non_pinned)

    def _on_clear_all(self, _sender) -> None:
        if rumps.alert("ClipVault", "Clear all clipboard history, including pinned items?", ok="Clear", cancel="Cancel"):
            self._clear(self._service.clear_all)

    def _clear(self, clear_fn: Callable[[], int]) -> None:
        try:
            clear_fn()
        except STORE_ERRORS:
            logger.exception("Error clearing clipboard history")
            rumps.notification("ClipVault", "", "Could not clear history", sound=False)

    def _on_quit(self, _sender) -> None:
        self._service.shutdown()
        rumps.quit_application()


def _option_key_held() -> bool:
    try:
        from AppKit import NSAlternateKeyMask, NSEvent

        return bool(NSEvent.modifierFlags() & NSAlternateKeyMask)
    except ImportError:
        return False


def _set_icon_from_png(item: rumps.MenuItem, png: bytes) -> None:
    from AppKit import NSImage
    from Foundation import NSData

    image = NSImage.alloc().initWithData_(NSData.dataWithBytes_length_(png, len(png)))
    if image is None:
        return
    item._menuitem.setImage_(image)
