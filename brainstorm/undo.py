"""Undo/Redo system for Brainstorm."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, ClassVar, Iterator, List, Optional, Tuple

from brainstorm.errors import ReplayError
from brainstorm.model import Edge, Node

if TYPE_CHECKING:
    from brainstorm.graph import GraphModel

logger = logging.getLogger(__name__)


class ActionType(Enum):
    """Types of undoable actions."""
    CREATE_NODE = "create_node"
    DELETE_NODE = "delete_node"
    MOVE_NODE = "move_node"
    EDIT_NODE_TEXT = "edit_node_text"
    CREATE_EDGE = "create_edge"
    DELETE_EDGE = "delete_edge"
    EDIT_EDGE_LABEL = "edit_edge_label"
    BATCH = "batch"


def _quote(text: str) -> str:
    return f"'{text[:20]}...'" if len(text) > 20 else f"'{text}'"


@dataclass(frozen=True)
class UndoAction:
    """Base for undoable actions. Snapshots are detached copies."""
    action_type: ClassVar[Optional[ActionType]] = None

    @property
    def description(self) -> str:
        return ""


@dataclass(frozen=True)
class CreateNodeAction(UndoAction):
    node: Node
    action_type: ClassVar[ActionType] = ActionType.CREATE_NODE

    @property
    def description(self) -> str:
        return f"Create node {_quote(self.node.text)}"


@dataclass(frozen=True)
class DeleteNodeAction(UndoAction):
    node: Node
    edges: Tuple[Edge, ...] = ()
    action_type: ClassVar[ActionType] = ActionType.DELETE_NODE

    @property
    def description(self) -> str:
        return f"Delete node {_quote(self.node.text)}"


@dataclass(frozen=True)
class MoveNodeAction(UndoAction):
    node_id: str
    old_x: float
    old_y: float
    new_x: float
    new_y: float
    action_type: ClassVar[ActionType] = ActionType.MOVE_NODE

    @property
    def description(self) -> str:
        return "Move node"


@dataclass(frozen=True)
class EditNodeTextAction(UndoAction):
    node_id: str
    old_text: str
    new_text: str
    action_type: ClassVar[ActionType] = ActionType.EDIT_NODE_TEXT

    @property
    def description(self) -> str:
        return "Edit node text"


@dataclass(frozen=True)
class CreateEdgeAction(UndoAction):
    edge: Edge
    action_type: ClassVar[ActionType] = ActionType.CREATE_EDGE

    @property
    def description(self) -> str:
        return "Connect nodes"


@dataclass(frozen=True)
class DeleteEdgeAction(UndoAction):
    edge: Edge
    action_type: ClassVar[ActionType] = ActionType.DELETE_EDGE

    @property
    def description(self) -> str:
        return "Delete connection"


@dataclass(frozen=True)
class EditEdgeLabelAction(UndoAction):
    edge_id: str
    old_label: str
    new_label: str
    action_type: ClassVar[ActionType] = ActionType.EDIT_EDGE_LABEL

    @property
    def description(self) -> str:
        return "Edit connection label"


@dataclass(frozen=True)
class BatchAction(UndoAction):
    actions: Tuple[UndoAction, ...]
    label: str = ""
    action_type: ClassVar[ActionType] = ActionType.BATCH

    @property
    def description(self) -> str:
        if self.label:
            return self.label
        if len(self.actions) == 1:
            return self.actions[0].description
        return f"{len(self.actions)} changes"


def creates_node(action: UndoAction, node_id: str) -> bool:
    """True if replaying action forward would bring node_id into existence."""
    if isinstance(action, CreateNodeAction):
        return action.node.id == node_id
    if isinstance(action, BatchAction):
        return any(creates_node(step, node_id) for step in action.actions)
    return False


class UndoManager:
    """Manages undo/redo history and replays it against a graph."""

    def __init__(self, max_depth: int = 20):
        self.max_depth = max_depth
        self.graph: Optional["GraphModel"] = None
        self._undo_stack: List[UndoAction] = []
        self._redo_stack: List[UndoAction] = []
        self._applying = 0
        self._batches: List[List[UndoAction]] = []
        self._batch_labels: List[str] = []
        self.last_error: Optional[ReplayError] = None

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None
        self.on_replay_failed: Optional[Callable[[UndoAction, ReplayError], None]] = None

    def attach(self, graph: "GraphModel"):
        """Bind the graph that undo and redo operate on."""
        self.graph = graph

    @property
    def is_applying(self) -> bool:
        """True while an undo or redo is being replayed."""
        return self._applying > 0

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    @property
    def undo_description(self) -> str:
        """Get description of next undo action."""
        if self._undo_stack:
            return self._undo_stack[-1].description
        return ""

    @property
    def redo_description(self) -> str:
        """Get description of next redo action."""
        if self._redo_stack:
            return self._redo_stack[-1].description
        return ""

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    def push(self, action: UndoAction):
        """Push a new action to the undo stack."""
        if self.is_applying:
            return

        if self._batches:
            self._batches[-1].append(action)
            return

        self._undo_stack.append(action)
        self._redo_stack.clear()

        while len(self._undo_stack) > self.max_depth:
            self._undo_stack.pop(0)

        self._notify_changed()

    @contextmanager
    def batch(self, description: str = "") -> Iterator[None]:
        """Group every action pushed inside the block into one history entry."""
        self._batches.append([])
        self._batch_labels.append(description)
        try:
            yield
        finally:
            collected = self._batches.pop()
            label = self._batch_labels.pop()
            if collected:
                if self._batches:
                    # Nested batches fold into the outermost one
                    self._batches[-1].extend(collected)
                else:
                    self.push(BatchAction(tuple(collected), label))

    @contextmanager
    def replaying(self) -> Iterator[None]:
        """Suppress recording while the block runs."""
        self._applying += 1
        try:
            yield
        finally:
            self._applying -= 1

    def undo(self) -> Optional[UndoAction]:
        """Revert the last action. Returns it, or None if nothing was applied."""
        if not self._undo_stack or self.graph is None:
            return None

        action = self._undo_stack.pop()
        if not self._replay(action, forward=False):
            self._notify_changed()
            return None

        self._redo_stack.append(action)
        logger.info("Undo applied: %s", action.description)
        self._notify_changed()
        return action

    def redo(self) -> Optional[UndoAction]:
        """Re-apply the last undone action."""
        if not self._redo_stack or self.graph is None:
            return None

        action = self._redo_stack.pop()
        if not self._replay(action, forward=True):
            self._notify_changed()
            return None

        self._undo_stack.append(action)
        while len(self._undo_stack) > self.max_depth:
            self._undo_stack.pop(0)
        logger.info("Redo applied: %s", action.description)
        self._notify_changed()
        return action

    def clear(self):
        """Clear all history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._notify_changed()

    def discard_last(self, predicate: Callable[[UndoAction], bool]) -> Optional[UndoAction]:
        """Drop the newest undo entry without replaying it, if predicate accepts it."""
        if not self._undo_stack or not predicate(self._undo_stack[-1]):
            return None
        action = self._undo_stack.pop()
        logger.debug("Discarded history entry: %s", action.description)
        self._notify_changed()
        return action

    def _notify_changed(self):
        """Notify that undo/redo state changed."""
        if self.on_state_changed:
            self.on_state_changed()

    # ==================== Replay ====================

    def _replay(self, action: UndoAction, forward: bool) -> bool:
        direction = "redo" if forward else "undo"
        try:
            with self.replaying():
                self._apply(action, forward)
        except ReplayError as exc:
            logger.exception("Failed to %s '%s'", direction, action.description)
            self.last_error = exc
            if self.on_replay_failed:
                self.on_replay_failed(action, exc)
            return False
        self.last_error = None
        return True

    def _apply(self, action: UndoAction, forward: bool):
        """Apply one action in the given direction, raising ReplayError on divergence."""
        graph = self.graph
        kind = action.action_type

        if kind == ActionType.CREATE_NODE:
            if forward:
                self._expect(graph.restore_node(action.node), action, "node id already in use")
            else:
                self._expect(graph.delete_node(action.node.id, record=False), action, "node is gone")

        elif kind == ActionType.DELETE_NODE:
            if forward:
                self._expect(graph.delete_node(action.node.id, record=False), action, "node is gone")
            else:
                self._expect(graph.restore_node(action.node), action, "node id already in use")
                try:
                    for edge in action.edges:
                        self._expect(graph.restore_edge(edge), action, "edge cannot be restored")
                except ReplayError:
                    # Deleting the node also drops the edges restored so far
                    graph.delete_node(action.node.id, record=False)
                    raise

        elif kind == ActionType.MOVE_NODE:
            x, y = (action.new_x, action.new_y) if forward else (action.old_x, action.old_y)
            self._expect(graph.move_node(action.node_id, x, y, record=False), action, "node is gone")

        elif kind == ActionType.EDIT_NODE_TEXT:
            text = action.new_text if forward else action.old_text
            self._expect(graph.update_node_text(action.node_id, text, record=False),
                         action, "node is gone")

        elif kind == ActionType.CREATE_EDGE:
            if forward:
                self._expect(graph.restore_edge(action.edge), action, "edge cannot be restored")
            else:
                self._expect(graph.delete_edge(action.edge.id, record=False), action, "edge is gone")

        elif kind == ActionType.DELETE_EDGE:
            if forward:
                self._expect(graph.delete_edge(action.edge.id, record=False), action, "edge is gone")
            else:
                self._expect(graph.restore_edge(action.edge), action, "edge cannot be restored")

        elif kind == ActionType.EDIT_EDGE_LABEL:
            label = action.new_label if forward else action.old_label
            self._expect(graph.update_edge_label(action.edge_id, label, record=False),
                         action, "edge is gone")

        elif kind == ActionType.BATCH:
            self._apply_batch(action, forward)

        else:
            raise ReplayError(f"Unknown action type: {kind!r}", action)

    def _apply_batch(self, batch: BatchAction, forward: bool):
        steps = batch.actions if forward else tuple(reversed(batch.actions))
        done: List[UndoAction] = []
        try:
            for step in steps:
                self._apply(step, forward)
                done.append(step)
        except ReplayError:
            # Put back what already ran so the graph matches the stacks again
            for step in reversed(done):
                try:
                    self._apply(step, not forward)
                except ReplayError:
                    logger.exception("Rollback of '%s' failed", step.description)
            raise

    @staticmethod
    def _expect(result, action: UndoAction, reason: str):
        if result is None:
            raise ReplayError(f"Cannot replay '{action.description}': {reason}", action)
