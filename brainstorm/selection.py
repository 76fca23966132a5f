"""Transient selection state and the node state machine."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from brainstorm.geometry import Bounds, point_in_rect, Rect
from brainstorm.graph import GraphModel
from brainstorm.model import Node, NodeState

logger = logging.getLogger(__name__)


def is_blank(node: Node) -> bool:
    return not node.text.strip()


@dataclass
class EdgeCreation:
    """Edge being dragged out of a node, not yet committed."""
    active: bool = False
    source_id: Optional[str] = None
    cursor_x: float = 0.0
    cursor_y: float = 0.0


@dataclass
class RectSelection:
    """Rubber band in canvas coordinates."""
    active: bool = False
    start_x: float = 0.0
    start_y: float = 0.0
    end_x: float = 0.0
    end_y: float = 0.0


class SelectionState:
    """Which node is active, which edge is selected, and drag overlays.

    Drives node state transitions on the graph so that at most one node is
    ACTIVE or EDITABLE at a time.
    """

    def __init__(self, graph: GraphModel):
        self.graph = graph
        self.active_node_id: Optional[str] = None
        self.previous_node_id: Optional[str] = None
        self.selected_edge_id: Optional[str] = None
        self.multi_selected_ids: Set[str] = set()
        self.edge_creation = EdgeCreation()
        self.rect_selection = RectSelection()
        self.dragging_node_id: Optional[str] = None

        # Callbacks
        self.on_discard: Optional[Callable[[str], None]] = None

    def reset(self):
        """Forget everything without touching the graph."""
        self.active_node_id = None
        self.previous_node_id = None
        self.selected_edge_id = None
        self.multi_selected_ids = set()
        self.edge_creation = EdgeCreation()
        self.rect_selection = RectSelection()
        self.dragging_node_id = None

    @property
    def active_node(self) -> Optional[Node]:
        return self.graph.get_node(self.active_node_id)

    def _release(self, node_id: str, keep_multi: bool):
        """Deactivate a node, discarding it if it was left empty while editing."""
        node = self.graph.get_node(node_id)
        if node is None:
            return
        if node.state == NodeState.EDITABLE and is_blank(node):
            self._discard(node_id)
        elif not (keep_multi and node.state == NodeState.MULTI_SELECTED):
            self.graph.set_node_state(node_id, NodeState.INACTIVE)

    def _discard(self, node_id: str):
        logger.debug("Discarding empty node %s", node_id)
        self.graph.delete_node(node_id, record=False)
        if self.on_discard:
            self.on_discard(node_id)

    # ==================== Node Selection ====================

    def set_active_node(self, node_id: Optional[str]):
        """Make node_id the single active node (None clears it)."""
        if self.active_node_id and self.active_node_id != node_id:
            self._release(self.active_node_id, keep_multi=True)
            if self.active_node_id in self.graph:
                self.previous_node_id = self.active_node_id

        self.active_node_id = node_id
        self.selected_edge_id = None
        self.clear_multi_selection()

        if node_id is not None:
            self.graph.set_node_state(node_id, NodeState.ACTIVE)

    def set_editable_node(self, node_id: str):
        self.graph.set_node_state(node_id, NodeState.EDITABLE)
        self.active_node_id = node_id

    def exit_editable(self, node_id: str) -> Optional[Node]:
        """Leave editing. An empty node is deleted and None returned."""
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        if is_blank(node):
            self._discard(node_id)
            if self.active_node_id == node_id:
                self.active_node_id = None
            return None
        return self.graph.set_node_state(node_id, NodeState.ACTIVE)

    def clear_selection(self):
        if self.active_node_id:
            self._release(self.active_node_id, keep_multi=False)
        self.active_node_id = None
        self.selected_edge_id = None
        self.clear_multi_selection()

    # ==================== Multi Selection ====================

    def add_to_multi_selection(self, node_id: str):
        if self.graph.get_node(node_id) is None:
            return
        self.multi_selected_ids.add(node_id)
        self.graph.set_node_state(node_id, NodeState.MULTI_SELECTED)

    def set_multi_selection(self, node_ids: List[str]):
        self.clear_multi_selection()
        for node_id in node_ids:
            self.add_to_multi_selection(node_id)

    def clear_multi_selection(self):
        for node_id in self.multi_selected_ids:
            node = self.graph.get_node(node_id)
            if node is not None and node.state == NodeState.MULTI_SELECTED:
                self.graph.set_node_state(node_id, NodeState.INACTIVE)
        self.multi_selected_ids.clear()

    def selected_node_ids(self) -> List[str]:
        """Multi-selected ids plus the active one."""
        ids = sorted(self.multi_selected_ids)
        if self.active_node_id and self.active_node_id not in self.multi_selected_ids:
            ids.append(self.active_node_id)
        return ids

    # ==================== Edge Selection ====================

    def set_selected_edge(self, edge_id: Optional[str]):
        if edge_id:
            self.clear_selection()
        self.selected_edge_id = edge_id

    # ==================== Edge Creation ====================

    def start_edge_creation(self, source_id: str, x: float, y: float):
        self.edge_creation = EdgeCreation(True, source_id, x, y)

    def update_edge_creation(self, x: float, y: float):
        self.edge_creation.cursor_x = x
        self.edge_creation.cursor_y = y

    def cancel_edge_creation(self):
        self.edge_creation = EdgeCreation()

    # ==================== Rectangle Selection ====================

    def start_rect_selection(self, x: float, y: float):
        self.rect_selection = RectSelection(True, x, y, x, y)

    def update_rect_selection(self, x: float, y: float) -> List[str]:
        """Grow the band and select every node whose centre lies inside it."""
        self.rect_selection.end_x = x
        self.rect_selection.end_y = y

        bounds = self.rect_selection_bounds()
        band = Rect(bounds.center.x, bounds.center.y, bounds.width, bounds.height)
        inside = [n.id for n in self.graph.get_nodes() if point_in_rect((n.x, n.y), band)]
        self.set_multi_selection(inside)
        return inside

    def end_rect_selection(self):
        self.rect_selection.active = False

    def rect_selection_bounds(self) -> Bounds:
        r = self.rect_selection
        return Bounds(min(r.start_x, r.end_x), min(r.start_y, r.end_y),
                      max(r.start_x, r.end_x), max(r.start_y, r.end_y))

    # ==================== Drag State ====================

    def set_dragging_node(self, node_id: Optional[str]):
        self.dragging_node_id = node_id

    def forget(self, node_id: str):
        """Drop references to a node that no longer exists."""
        if self.active_node_id == node_id:
            self.active_node_id = None
        if self.previous_node_id == node_id:
            self.previous_node_id = None
        if self.dragging_node_id == node_id:
            self.dragging_node_id = None
        self.multi_selected_ids.discard(node_id)
