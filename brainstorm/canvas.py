"""GTK drawing area hosting the editor."""

import logging
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gdk, Gtk

from brainstorm.editor import Editor

logger = logging.getLogger(__name__)


ARROW_DIRECTIONS = {
    Gdk.KEY_Up: "up",
    Gdk.KEY_Down: "down",
    Gdk.KEY_Left: "left",
    Gdk.KEY_Right: "right",
}


class GraphCanvas(Gtk.DrawingArea):
    """Forwards pointer and keyboard input to an Editor and paints its scene."""

    def __init__(self, editor: Editor):
        super().__init__()
        self.editor = editor
        self.renderer = editor.renderer

        # Middle-button pan state
        self._pan_last: Optional[tuple] = None
        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0

        editor.on_redraw = self.queue_draw

        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_hexpand(True)
        self.set_vexpand(True)
        self.connect("resize", self._on_resize)

        self._setup_event_controllers()

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        click_ctrl.connect("released", self._on_click_released)
        self.add_controller(click_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.BOTH_AXES)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        pan_ctrl = Gtk.GestureDrag()
        pan_ctrl.set_button(2)
        pan_ctrl.connect("drag-begin", self._on_pan_begin)
        pan_ctrl.connect("drag-update", self._on_pan_update)
        pan_ctrl.connect("drag-end", self._on_pan_end)
        self.add_controller(pan_ctrl)

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        self.renderer.draw(cr)

    def _on_resize(self, area, width, height):
        self.renderer.resize(width, height)

    # ==================== Pointer ====================

    def _on_click(self, gesture, n_press, x, y):
        self.grab_focus()
        self.renderer.pointer_down(x, y, n_press)

    def _on_click_released(self, gesture, n_press, x, y):
        self.renderer.pointer_up(x, y)

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y
        self.renderer.pointer_move(x, y)

    def _on_scroll(self, controller, dx, dy):
        """Ctrl+scroll zooms around the pointer, plain scroll pans."""
        state = controller.get_current_event_state()
        if state & Gdk.ModifierType.CONTROL_MASK:
            step = self.editor.settings.renderer.zoom_step
            factor = step if dy < 0 else 1 / step
            self.renderer.zoom_at(self.last_mouse_x, self.last_mouse_y, factor)
        else:
            self.renderer.pan_by(-dx * 30, -dy * 30)
        return True

    def _on_pan_begin(self, gesture, x, y):
        self._pan_last = (0.0, 0.0)

    def _on_pan_update(self, gesture, offset_x, offset_y):
        if self._pan_last is None:
            return
        last_x, last_y = self._pan_last
        self.renderer.pan_by(offset_x - last_x, offset_y - last_y)
        self._pan_last = (offset_x, offset_y)

    def _on_pan_end(self, gesture, offset_x, offset_y):
        self._pan_last = None

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        ctrl = bool(state & Gdk.ModifierType.CONTROL_MASK)
        shift = bool(state & Gdk.ModifierType.SHIFT_MASK)

        if self.editor.editing_node_id is not None:
            return self._handle_edit_key(keyval, ctrl)

        if keyval == Gdk.KEY_z and ctrl and not shift:
            self.editor.undo()
        elif (keyval in (Gdk.KEY_z, Gdk.KEY_Z) and ctrl and shift) or \
                (keyval == Gdk.KEY_y and ctrl):
            self.editor.redo()
        elif keyval == Gdk.KEY_0 and ctrl:
            self.editor.fit_view()
        elif keyval in ARROW_DIRECTIONS and ctrl:
            self.editor.create_connected_node(ARROW_DIRECTIONS[keyval])
        elif keyval in ARROW_DIRECTIONS:
            self.editor.navigate(ARROW_DIRECTIONS[keyval])
        elif keyval == Gdk.KEY_Tab:
            self.editor.create_node_at_center()
        elif keyval in (Gdk.KEY_Return, Gdk.KEY_F2):
            active = self.editor.selection.active_node_id
            if active is None:
                return False
            self.editor.begin_edit(active)
        elif keyval in (Gdk.KEY_Delete, Gdk.KEY_BackSpace):
            return self.editor.delete_selection() > 0
        elif keyval == Gdk.KEY_Escape:
            self.editor.clear_selection()
        else:
            return False
        return True

    def _handle_edit_key(self, keyval, ctrl: bool) -> bool:
        """Minimal text entry while a node is editable."""
        if keyval in (Gdk.KEY_Return, Gdk.KEY_KP_Enter):
            self.editor.commit_edit()
        elif keyval == Gdk.KEY_Escape:
            self.editor.cancel_edit()
        elif keyval == Gdk.KEY_BackSpace:
            self.editor.delete_backward()
        elif keyval == Gdk.KEY_Tab:
            self.editor.commit_edit()
        else:
            uc = Gdk.keyval_to_unicode(keyval)
            if not uc or ctrl or not chr(uc).isprintable():
                return False
            self.editor.insert_text(chr(uc))
        return True
