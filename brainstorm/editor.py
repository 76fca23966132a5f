"""Interaction controller tying the model, history, layout and renderer together."""

import logging
from typing import Any, Callable, Dict, Optional

from brainstorm.errors import ReplayError
from brainstorm.events import ChangeNotifier
from brainstorm.geometry import find_free_position
from brainstorm.graph import GraphModel
from brainstorm.model import Node, NodeState
from brainstorm.renderer import SceneRenderer
from brainstorm.scheduler import Scheduler
from brainstorm.selection import SelectionState, is_blank
from brainstorm.settings import Settings
from brainstorm.simulation import ForceSimulation
from brainstorm.text import EMPTY_SIZE, TextLayout
from brainstorm.undo import (
    EditNodeTextAction,
    MoveNodeAction,
    UndoAction,
    UndoManager,
    creates_node,
)

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down", "left", "right")
CONNECTED_BONUS = 10000


class Editor:
    """One open diagram and everything needed to edit it interactively."""

    def __init__(self, scheduler: Scheduler,
                 settings: Optional[Settings] = None,
                 layout: Optional[TextLayout] = None):
        self.settings = settings or Settings()
        self.scheduler = scheduler

        self.undo_manager = UndoManager(max_depth=self.settings.editor.undo_depth)
        self.notifier = ChangeNotifier(scheduler)
        self.graph = GraphModel(layout, self.undo_manager, self.notifier)
        self.selection = SelectionState(self.graph)
        self.simulation = ForceSimulation(self.graph, scheduler, self.settings.simulation)
        self.renderer = SceneRenderer(self.graph, self.selection, self.settings.renderer)

        self._editing_id: Optional[str] = None
        self._edit_original = ""
        self._drag_origin: Optional[tuple] = None

        # Callbacks
        self.on_redraw: Optional[Callable[[], None]] = None
        self.on_history_changed: Optional[Callable[[], None]] = None
        self.on_status: Optional[Callable[[str], None]] = None

        # Tick write-backs reach the renderer through this coalesced notification
        self._unsubscribe = self.graph.subscribe(self.refresh)
        self.undo_manager.on_state_changed = self._history_changed
        self.undo_manager.on_replay_failed = self._replay_failed
        self.selection.on_discard = self._discarded

        r = self.renderer
        r.on_node_click = self.handle_node_click
        r.on_node_double_click = self.handle_node_double_click
        r.on_node_drag_start = self.handle_node_drag_start
        r.on_node_drag = self.handle_node_drag
        r.on_node_drag_end = self.handle_node_drag_end
        r.on_edge_click = self.handle_edge_click
        r.on_canvas_click = self.handle_canvas_click
        r.on_canvas_drag_start = self.handle_canvas_drag_start
        r.on_canvas_drag = self.handle_canvas_drag
        r.on_canvas_drag_end = self.handle_canvas_drag_end
        r.on_view_changed = self._redraw

    # ==================== Rendering ====================

    def refresh(self):
        """Reconcile the scene and ask the host to repaint."""
        self.renderer.render()
        self._redraw()

    def _redraw(self):
        if self.on_redraw:
            self.on_redraw()

    def _history_changed(self):
        if self.on_history_changed:
            self.on_history_changed()

    def _status(self, message: str):
        logger.debug(message)
        if self.on_status:
            self.on_status(message)

    def _replay_failed(self, action: UndoAction, error: ReplayError):
        self._status(f"Could not replay '{action.description}'")

    def _discarded(self, node_id: str):
        """A node left empty was removed, so its creation is no longer history."""
        self.undo_manager.discard_last(lambda action: creates_node(action, node_id))

    # ==================== Text Editing ====================

    @property
    def editing_node_id(self) -> Optional[str]:
        return self._editing_id

    def begin_edit(self, node_id: str) -> Optional[Node]:
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        if self._editing_id and self._editing_id != node_id:
            self._record_edit()
        self.selection.set_editable_node(node_id)
        self._editing_id = node_id
        self._edit_original = node.text
        return node

    def edit_text(self, text: str) -> Optional[Node]:
        """Replace the text of the node being edited without recording it yet."""
        if self._editing_id is None:
            return None
        node = self.graph.update_node_text(self._editing_id, text, record=False)
        if node is not None:
            self.simulation.sync_from_model()
        return node

    def insert_text(self, chars: str) -> Optional[Node]:
        node = self.graph.get_node(self._editing_id)
        if node is None:
            return None
        return self.edit_text(node.text + chars)

    def delete_backward(self) -> Optional[Node]:
        node = self.graph.get_node(self._editing_id)
        if node is None:
            return None
        return self.edit_text(node.text[:-1])

    def _record_edit(self):
        """Push one history entry for the whole editing session."""
        node = self.graph.get_node(self._editing_id)
        if node is not None and not is_blank(node) and node.text != self._edit_original:
            self.undo_manager.push(
                EditNodeTextAction(node.id, self._edit_original, node.text))
        self._editing_id = None
        self._edit_original = ""

    def commit_edit(self) -> Optional[Node]:
        """Finish editing. Empty nodes are discarded and None returned."""
        node_id = self._editing_id
        if node_id is None:
            return None

        self._record_edit()
        node = self.selection.exit_editable(node_id)
        if node is None:
            self.selection.clear_selection()
            self._status("Empty node removed")

        self.simulation.update()
        self.simulation.reheat(0.1)
        return node

    def cancel_edit(self):
        """Leave editing and deselect. The typed text stays; an empty node is removed."""
        node_id = self._editing_id
        if node_id is None:
            return

        self._record_edit()
        self.selection.clear_selection()
        if node_id not in self.graph:
            self._status("Empty node removed")

        self.simulation.update()
        self.simulation.reheat(0.1)

    # ==================== Renderer Intents ====================

    def handle_node_click(self, node_id: str):
        node = self.graph.get_node(node_id)
        if node is None:
            return

        if node.state == NodeState.ACTIVE:
            self.begin_edit(node_id)
            return
        if node.state == NodeState.EDITABLE:
            return

        self._leave_edit()
        self.simulation.clear_focus()
        self.selection.set_active_node(node_id)
        self.simulation.focus_node(node_id)

    def handle_node_double_click(self, node_id: str):
        if self.graph.get_node(node_id) is None or self._editing_id == node_id:
            return
        self._leave_edit()
        self.selection.set_active_node(node_id)
        self.begin_edit(node_id)

    def handle_node_drag_start(self, node_id: str, x: float, y: float):
        node = self.graph.get_node(node_id)
        if node is None or node.state == NodeState.EDITABLE:
            return

        self.selection.set_dragging_node(node_id)
        self._drag_origin = (node.x, node.y)

        # Dragging out of the active node draws a new connection
        if node.state == NodeState.ACTIVE:
            self.selection.start_edge_creation(node_id, x, y)
            return

        self.simulation.fix_node(node_id, node.x, node.y)
        self.simulation.start_drag(node_id)

    def handle_node_drag(self, node_id: str, x: float, y: float, dx: float, dy: float):
        if self.selection.edge_creation.active:
            self.selection.update_edge_creation(x, y)
            self.refresh()
            return

        if self.selection.dragging_node_id != node_id:
            return
        node = self.graph.get_node(node_id)
        if node is None:
            return

        new_x = node.x + dx
        new_y = node.y + dy
        self.graph.move_node(node_id, new_x, new_y, record=False)
        self.simulation.fix_node(node_id, new_x, new_y)
        self.simulation.sync_from_model()
        self.refresh()

    def handle_node_drag_end(self, node_id: str, x: float, y: float):
        self.selection.set_dragging_node(None)
        origin = self._drag_origin
        self._drag_origin = None

        creation = self.selection.edge_creation
        if creation.active:
            self._finish_edge_creation(creation.source_id, x, y)
            return

        node = self.graph.get_node(node_id)
        if node is None or origin is None:
            return
        if (node.x, node.y) != origin:
            self.undo_manager.push(
                MoveNodeAction(node_id, origin[0], origin[1], node.x, node.y))

        self.simulation.release_node(node_id)
        self.simulation.end_drag()

    def _finish_edge_creation(self, source_id: str, x: float, y: float):
        target = self.graph.node_at(x, y)
        created: Optional[Node] = None

        if target is not None and target.id != source_id:
            if self.graph.create_edge(source_id, target.id) is not None:
                self._status("Edge created")
        elif target is None:
            with self.undo_manager.batch("Add connected node"):
                created = self.graph.create_node({"x": x, "y": y})
                self.graph.create_edge(source_id, created.id)

        self.selection.cancel_edge_creation()
        if created is not None:
            self.selection.set_active_node(created.id)
            self.begin_edit(created.id)

        self.simulation.update()
        self.simulation.reheat(0.3)
        if created is not None:
            self.renderer.center_on_node(created.id)
        self.refresh()

    def handle_edge_click(self, edge_id: str):
        self._leave_edit()
        self.simulation.clear_focus()
        self.selection.set_selected_edge(edge_id)
        self.refresh()

    def handle_canvas_click(self, x: float, y: float):
        active = self.selection.active_node
        if active is not None and active.state == NodeState.EDITABLE and is_blank(active):
            # This click only dismisses the empty node
            self._editing_id = None
            self.selection.clear_selection()
            self.simulation.update()
            self.refresh()
            return

        self._leave_edit()
        node = self.graph.create_node({"x": x, "y": y})
        self.selection.set_active_node(node.id)
        self.begin_edit(node.id)

        self.simulation.update()
        self.simulation.reheat(self.settings.editor.reheat_on_create)

    def handle_canvas_drag_start(self, x: float, y: float):
        self._leave_edit()
        self.selection.clear_selection()
        self.selection.start_rect_selection(x, y)
        self.refresh()

    def handle_canvas_drag(self, x: float, y: float):
        if self.selection.rect_selection.active:
            self.selection.update_rect_selection(x, y)
            self.refresh()

    def handle_canvas_drag_end(self, x: float, y: float):
        if self.selection.rect_selection.active:
            self.selection.update_rect_selection(x, y)
            self.selection.end_rect_selection()
            self.refresh()

    def _leave_edit(self):
        """Record any editing session before the selection moves elsewhere."""
        if self._editing_id is not None:
            self._record_edit()

    # ==================== Commands ====================

    def clear_selection(self):
        """Deselect everything and relax the focused layout."""
        self._leave_edit()
        self.simulation.clear_focus()
        self.selection.clear_selection()
        self.simulation.update()
        self.refresh()

    def create_node_at_center(self) -> Optional[Node]:
        """New empty node near the middle of the view, unless one is already selected."""
        if self.selection.active_node_id:
            return None

        w, h = EMPTY_SIZE
        occupied = [n.rect for n in self.graph.get_nodes()]
        pos = find_free_position(self.renderer.visible_center(), w, h, occupied)
        node = self.graph.create_node({"x": pos.x, "y": pos.y})
        self.selection.set_active_node(node.id)
        self.begin_edit(node.id)

        self.simulation.update()
        self.simulation.reheat(self.settings.editor.reheat_on_create)
        self.renderer.center_on_node(node.id)
        return node

    def create_connected_node(self, direction: str, offset: float = 200) -> Optional[Node]:
        """New node linked from the active one, placed in the given direction."""
        active = self.selection.active_node
        if active is None or direction not in DIRECTIONS:
            return None
        if active.state == NodeState.EDITABLE and is_blank(active):
            return None

        x, y = active.x, active.y
        if direction == "up":
            y -= offset
        elif direction == "down":
            y += offset
        elif direction == "left":
            x -= offset
        else:
            x += offset

        self._leave_edit()
        with self.undo_manager.batch("Add connected node"):
            node = self.graph.create_node({"x": x, "y": y})
            self.graph.create_edge(active.id, node.id)
        self.selection.set_active_node(node.id)
        self.begin_edit(node.id)

        self.simulation.update()
        self.simulation.reheat(0.3)
        self.renderer.center_on_node(node.id)
        return node

    def delete_selection(self) -> int:
        """Delete the selected edge, or every selected node as one history entry."""
        active = self.selection.active_node
        if active is not None and active.state == NodeState.EDITABLE:
            return 0

        edge_id = self.selection.selected_edge_id
        if edge_id is not None:
            self.graph.delete_edge(edge_id)
            self.selection.set_selected_edge(None)
            self.simulation.update()
            self._status("Edge deleted")
            return 1

        ids = self.selection.selected_node_ids()
        if not ids:
            return 0

        previous = self.selection.previous_node_id
        with self.undo_manager.batch(f"Delete {len(ids)} node(s)"):
            for node_id in ids:
                self.graph.delete_node(node_id)
        for node_id in ids:
            self.selection.forget(node_id)
        self.selection.clear_selection()

        # Fall back to the previously selected node
        if len(ids) == 1 and previous is not None and previous in self.graph:
            self.selection.set_active_node(previous)
            self.renderer.center_on_node(previous)

        self.simulation.update()
        self._status(f"{len(ids)} node(s) deleted")
        return len(ids)

    def navigate(self, direction: str) -> Optional[str]:
        """Activate the best node in a direction; connected nodes win."""
        active = self.selection.active_node
        if active is None or active.state == NodeState.EDITABLE or direction not in DIRECTIONS:
            return None

        connected = {n.id for n in self.graph.get_connected_nodes(active.id)}
        best_id = None
        best_score = float("-inf")
        for node in self.graph.get_nodes():
            if node.id == active.id:
                continue
            score = self._direction_score(active, node, direction)
            if score is None:
                continue
            if node.id in connected:
                score += CONNECTED_BONUS
            if score > best_score:
                best_score = score
                best_id = node.id

        if best_id is not None:
            self.selection.set_active_node(best_id)
            self.renderer.center_on_node(best_id)
        return best_id

    @staticmethod
    def _direction_score(origin: Node, node: Node, direction: str) -> Optional[float]:
        dx = node.x - origin.x
        dy = node.y - origin.y
        if direction == "up":
            return -dy - abs(dx) * 0.5 if dy < 0 else None
        if direction == "down":
            return dy - abs(dx) * 0.5 if dy > 0 else None
        if direction == "left":
            return -dx - abs(dy) * 0.5 if dx < 0 else None
        return dx - abs(dy) * 0.5 if dx > 0 else None

    def undo(self) -> Optional[UndoAction]:
        pending = self._finish_edit_for_replay()
        action = self.undo_manager.undo()
        self._after_replay(pending)
        return action

    def redo(self) -> Optional[UndoAction]:
        pending = self._finish_edit_for_replay()
        action = self.undo_manager.redo()
        self._after_replay(pending)
        return action

    def _finish_edit_for_replay(self) -> Optional[str]:
        """Commit any edit before history is replayed.

        A node that has stayed empty since it was created is left alone so
        the replay removes it through its own history entry. Its id is
        returned.
        """
        node = self.graph.get_node(self._editing_id)
        if node is None:
            self._editing_id = None
            return None
        if is_blank(node) and not self._edit_original.strip():
            self._editing_id = None
            self._edit_original = ""
            return node.id
        self.commit_edit()
        return None

    def _after_replay(self, pending: Optional[str] = None):
        if pending is not None and pending in self.graph:
            self.selection.clear_selection()

        # Drop selection references to entities the replay removed
        for node_id in list(self.selection.selected_node_ids()):
            if node_id not in self.graph:
                self.selection.forget(node_id)
        if self.graph.get_edge(self.selection.selected_edge_id) is None:
            self.selection.selected_edge_id = None
        if self.simulation.focused_node_id not in self.graph:
            self.simulation.clear_focus()

        self.simulation.sync_from_model()
        self.simulation.reheat()

    def fit_view(self):
        self.renderer.fit_view()
        self.refresh()

    def load(self, data: Dict[str, Any]):
        """Replace the diagram with serialized data."""
        self._editing_id = None
        self._drag_origin = None
        self.selection.reset()
        self.simulation.clear_focus()

        self.graph.load_from_data(data)
        self.simulation.update()
        self.renderer.fit_view()
        self.simulation.reheat()

    def to_json(self, include_layout: bool = True) -> Dict[str, Any]:
        return self.graph.to_json(include_layout)

    def dispose(self):
        self._unsubscribe()
        self.notifier.cancel()
        self.simulation.dispose()
        self.renderer.dispose()
        self.on_redraw = None
        self.on_history_changed = None
        self.on_status = None
