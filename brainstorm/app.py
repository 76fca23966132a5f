"""Main Brainstorm application."""

import logging
import sys
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Adw, Gio, Gtk

from brainstorm import __app_id__
from brainstorm.canvas import GraphCanvas
from brainstorm.editor import Editor
from brainstorm.errors import SettingsError
from brainstorm.scheduler import GLibScheduler
from brainstorm.settings import Settings, load_settings

logger = logging.getLogger(__name__)


class BrainstormWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, settings: Settings):
        super().__init__(application=app)
        self.editor = Editor(GLibScheduler(), settings)

        self.set_title("Brainstorm")
        self.set_default_size(1200, 800)

        self._build_ui()
        self._setup_shortcuts()

        self.editor.on_history_changed = self._update_history_buttons
        self.editor.on_status = self._show_toast
        self._update_history_buttons()

        self.connect("close-request", self._on_close_request)

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.canvas = GraphCanvas(self.editor)
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(self.canvas)
        self.toast_overlay.set_vexpand(True)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)
        self.canvas.grab_focus()

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()
        header.add_css_class("flat")

        self.undo_btn = Gtk.Button()
        self.undo_btn.set_icon_name("edit-undo-symbolic")
        self.undo_btn.set_tooltip_text("Undo (Ctrl+Z)")
        self.undo_btn.connect("clicked", lambda b: self._undo())
        header.pack_start(self.undo_btn)

        self.redo_btn = Gtk.Button()
        self.redo_btn.set_icon_name("edit-redo-symbolic")
        self.redo_btn.set_tooltip_text("Redo (Ctrl+Shift+Z)")
        self.redo_btn.connect("clicked", lambda b: self._redo())
        header.pack_start(self.redo_btn)

        fit_btn = Gtk.Button()
        fit_btn.set_icon_name("zoom-fit-best-symbolic")
        fit_btn.set_tooltip_text("Zoom to Fit (Ctrl+0)")
        fit_btn.connect("clicked", lambda b: self.editor.fit_view())
        header.pack_end(fit_btn)

        add_btn = Gtk.Button()
        add_btn.set_icon_name("list-add-symbolic")
        add_btn.set_tooltip_text("New Node (Tab)")
        add_btn.connect("clicked", lambda b: self._add_node())
        header.pack_end(add_btn)

        return header

    def _setup_shortcuts(self):
        """Window actions that work even when the canvas has no focus."""
        actions = [
            ("undo", self._undo, None),
            ("redo", self._redo, None),
            ("zoom-fit", self.editor.fit_view, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

    # ==================== Commands ====================

    def _undo(self):
        action = self.editor.undo()
        if action is not None:
            self._show_toast(f"Undid {action.description}")

    def _redo(self):
        action = self.editor.redo()
        if action is not None:
            self._show_toast(f"Redid {action.description}")

    def _add_node(self):
        if self.editor.create_node_at_center() is None:
            self._show_toast("Deselect the current node first")
        self.canvas.grab_focus()

    def _update_history_buttons(self):
        undo = self.editor.undo_manager
        self.undo_btn.set_sensitive(undo.can_undo)
        self.redo_btn.set_sensitive(undo.can_redo)
        self.undo_btn.set_tooltip_text(
            f"Undo {undo.undo_description}" if undo.can_undo else "Nothing to undo")
        self.redo_btn.set_tooltip_text(
            f"Redo {undo.redo_description}" if undo.can_redo else "Nothing to redo")

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)

    def _on_close_request(self, window) -> bool:
        self.editor.dispose()
        return False


class BrainstormApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.settings: Optional[Settings] = None
        self.window: Optional[BrainstormWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)
        try:
            self.settings = load_settings()
        except SettingsError as exc:
            logger.error("%s, using defaults", exc)
            self.settings = Settings()

    def do_activate(self):
        """Activate application."""
        if not self.window:
            self.window = BrainstormWindow(self, self.settings or Settings())
        self.window.present()


def main():
    """Main entry point."""
    app = BrainstormApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
