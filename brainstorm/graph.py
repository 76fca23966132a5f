"""Graph model: nodes, edges and their mutations."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from brainstorm.events import ChangeNotifier
from brainstorm.geometry import point_in_rect
from brainstorm.model import Edge, Node, NodeState, generate_id, now_ms
from brainstorm.text import TextLayout, sizing_regime
from brainstorm.undo import (
    CreateEdgeAction,
    CreateNodeAction,
    DeleteEdgeAction,
    DeleteNodeAction,
    EditEdgeLabelAction,
    EditNodeTextAction,
    MoveNodeAction,
    UndoAction,
    UndoManager,
)

logger = logging.getLogger(__name__)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-None value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


class GraphModel:
    """Owns every node and edge of a diagram.

    Mutations return the affected entity, or None when rejected, and record
    themselves in the undo manager unless ``record`` is False or a replay is
    in progress. Listeners registered with ``subscribe`` hear about changes
    through the change notifier.
    """

    def __init__(self,
                 layout: Optional[TextLayout] = None,
                 undo_manager: Optional[UndoManager] = None,
                 notifier: Optional[ChangeNotifier] = None):
        self.layout = layout or TextLayout()
        self.undo_manager = undo_manager
        self.notifier = notifier or ChangeNotifier()
        self.title: Optional[str] = None
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}

        if undo_manager is not None:
            undo_manager.attach(self)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Listen for model changes. Returns an unsubscribe function."""
        return self.notifier.subscribe(callback)

    def _changed(self):
        self.notifier.notify()

    def _record(self, action: UndoAction, record: bool):
        if record and self.undo_manager is not None:
            self.undo_manager.push(action)

    def _reject(self, message: str, *args) -> None:
        logger.debug("Rejected: " + message, *args)
        return None

    # ==================== Nodes ====================

    def create_node(self, partial: Optional[Dict[str, Any]] = None,
                    record: bool = True) -> Optional[Node]:
        """Create a node from a partial description (snake or camel case keys)."""
        partial = partial or {}
        node_id = partial.get("id") or generate_id()
        if node_id in self._nodes:
            return self._reject("node id %s already exists", node_id)

        now = now_ms()
        text = str(partial.get("text") or "")
        state = NodeState(partial.get("state") or NodeState.INACTIVE)
        w, h = self.layout.node_size(text, state)
        node = Node(
            id=node_id,
            text=text,
            x=float(partial.get("x") or 0.0),
            y=float(partial.get("y") or 0.0),
            w=w,
            h=h,
            state=state,
            created_at=int(_pick(partial, "created_at", "createdAt", default=now)),
            updated_at=int(_pick(partial, "updated_at", "updatedAt", default=now)),
            meta=dict(partial.get("meta") or {}),
        )
        self._nodes[node_id] = node

        self._record(CreateNodeAction(node.copy()), record)
        self._changed()
        return node

    def delete_node(self, node_id: str, record: bool = True) -> Optional[Node]:
        """Delete a node together with every edge touching it."""
        node = self._nodes.get(node_id)
        if node is None:
            return self._reject("delete of unknown node %s", node_id)

        removed = self.get_connected_edges(node_id)
        for edge in removed:
            del self._edges[edge.id]
        del self._nodes[node_id]

        self._record(DeleteNodeAction(node.copy(), tuple(e.copy() for e in removed)), record)
        self._changed()
        return node

    def move_node(self, node_id: str, x: float, y: float,
                  record: bool = True) -> Optional[Node]:
        node = self._nodes.get(node_id)
        if node is None:
            return self._reject("move of unknown node %s", node_id)

        old_x, old_y = node.x, node.y
        node.x = x
        node.y = y
        node.updated_at = now_ms()

        self._record(MoveNodeAction(node_id, old_x, old_y, x, y), record)
        self._changed()
        return node

    def update_node_text(self, node_id: str, text: str,
                         record: bool = True) -> Optional[Node]:
        node = self._nodes.get(node_id)
        if node is None:
            return self._reject("text edit of unknown node %s", node_id)

        old_text = node.text
        node.text = text
        node.updated_at = now_ms()
        node.w, node.h = self.layout.node_size(text, node.state)

        if old_text != text:
            self._record(EditNodeTextAction(node_id, old_text, text), record)
        self._changed()
        return node

    def set_node_state(self, node_id: str, state: NodeState) -> Optional[Node]:
        """Transition a node's state, resizing it when the sizing rule changes."""
        node = self._nodes.get(node_id)
        if node is None:
            return self._reject("state change of unknown node %s", node_id)

        old_state = node.state
        node.state = state
        if sizing_regime(old_state) != sizing_regime(state):
            node.w, node.h = self.layout.node_size(node.text, state)
        self._changed()
        return node

    def restore_node(self, snapshot: Node) -> Optional[Node]:
        """Re-insert a node snapshot verbatim. It comes back inactive."""
        if snapshot.id in self._nodes:
            return self._reject("restore of node %s over an existing one", snapshot.id)

        node = snapshot.copy()
        node.state = NodeState.INACTIVE
        node.w, node.h = self.layout.node_size(node.text, node.state)
        self._nodes[node.id] = node
        self._changed()
        return node

    def apply_positions(self, positions: Dict[str, Tuple[float, float]]) -> int:
        """Bulk, unrecorded position write. Returns how many nodes moved."""
        moved = 0
        for node_id, (x, y) in positions.items():
            node = self._nodes.get(node_id)
            if node is None:
                continue
            node.x = x
            node.y = y
            moved += 1
        if moved:
            self._changed()
        return moved

    # ==================== Edges ====================

    def _edge_problem(self, source_id: str, target_id: str) -> Optional[str]:
        if source_id == target_id:
            return "self-loop"
        if source_id not in self._nodes or target_id not in self._nodes:
            return "missing endpoint"
        if self.has_edge(source_id, target_id):
            return "duplicate"
        return None

    def create_edge(self, source_id: str, target_id: str, label: str = "",
                    record: bool = True) -> Optional[Edge]:
        problem = self._edge_problem(source_id, target_id)
        if problem:
            return self._reject("edge %s -> %s: %s", source_id, target_id, problem)

        edge = Edge(source_id=source_id, target_id=target_id, label=label)
        self._edges[edge.id] = edge

        self._record(CreateEdgeAction(edge.copy()), record)
        self._changed()
        return edge

    def delete_edge(self, edge_id: str, record: bool = True) -> Optional[Edge]:
        edge = self._edges.pop(edge_id, None)
        if edge is None:
            return self._reject("delete of unknown edge %s", edge_id)

        self._record(DeleteEdgeAction(edge.copy()), record)
        self._changed()
        return edge

    def update_edge_label(self, edge_id: str, label: str,
                          record: bool = True) -> Optional[Edge]:
        edge = self._edges.get(edge_id)
        if edge is None:
            return self._reject("label edit of unknown edge %s", edge_id)

        old_label = edge.label
        edge.label = label

        if old_label != label:
            self._record(EditEdgeLabelAction(edge_id, old_label, label), record)
        self._changed()
        return edge

    def restore_edge(self, snapshot: Edge) -> Optional[Edge]:
        """Re-insert an edge snapshot verbatim, keeping its id."""
        if snapshot.id in self._edges:
            return self._reject("restore of edge %s over an existing one", snapshot.id)
        problem = self._edge_problem(snapshot.source_id, snapshot.target_id)
        if problem:
            return self._reject("restore of edge %s: %s", snapshot.id, problem)

        edge = snapshot.copy()
        self._edges[edge.id] = edge
        self._changed()
        return edge

    # ==================== Queries ====================

    def get_node(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def get_edge(self, edge_id: Optional[str]) -> Optional[Edge]:
        if edge_id is None:
            return None
        return self._edges.get(edge_id)

    def get_nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def get_edges(self) -> List[Edge]:
        return list(self._edges.values())

    def has_edge(self, source_id: str, target_id: str) -> bool:
        """Check if an edge exists from source to target."""
        return any(e.source_id == source_id and e.target_id == target_id
                   for e in self._edges.values())

    def get_connected_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges.values() if e.touches(node_id)]

    def get_connected_nodes(self, node_id: str) -> List[Node]:
        """Neighbours in either direction, each listed once."""
        seen: Dict[str, Node] = {}
        for edge in self._edges.values():
            other = None
            if edge.source_id == node_id:
                other = edge.target_id
            elif edge.target_id == node_id:
                other = edge.source_id
            if other is not None and other in self._nodes and other not in seen:
                seen[other] = self._nodes[other]
        return list(seen.values())

    def node_at(self, x: float, y: float) -> Optional[Node]:
        """Topmost node whose rectangle contains the canvas point."""
        for node in reversed(list(self._nodes.values())):
            if point_in_rect((x, y), node.rect):
                return node
        return None

    def find_editable_node(self) -> Optional[Node]:
        for node in self._nodes.values():
            if node.state == NodeState.EDITABLE:
                return node
        return None

    # ==================== Bulk Operations ====================

    def clear(self):
        """Remove everything, history included."""
        self._nodes.clear()
        self._edges.clear()
        if self.undo_manager is not None:
            self.undo_manager.clear()
        self._changed()

    def load_from_data(self, data: Dict[str, Any]):
        """Replace the diagram with serialized data. Not undoable."""
        self.clear()
        self.title = data.get("title")

        for entry in data.get("nodes") or []:
            try:
                node = self.create_node(entry, record=False)
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed node %r: %s", entry, exc)
                continue
            if node is None:
                logger.warning("Skipping duplicate node id %r", entry.get("id"))

        for entry in data.get("edges") or []:
            try:
                edge = Edge.from_json(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed edge %r: %s", entry, exc)
                continue
            if self.restore_edge(edge) is None:
                logger.warning("Skipping edge %s (%s -> %s)",
                               edge.id, edge.source_id, edge.target_id)

    def to_json(self, include_layout: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.title:
            data["title"] = self.title
        data["nodes"] = [n.to_json(include_layout) for n in self._nodes.values()]
        data["edges"] = [e.to_json() for e in self._edges.values()]
        return data
