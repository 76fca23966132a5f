"""Tests for the undo/redo history."""

import logging

from brainstorm.errors import ReplayError
from brainstorm.model import Node
from brainstorm.undo import (
    ActionType,
    BatchAction,
    CreateNodeAction,
    EditNodeTextAction,
    MoveNodeAction,
    UndoManager,
    creates_node,
)


class TestStack:
    def test_empty(self):
        manager = UndoManager()
        assert not manager.can_undo
        assert not manager.can_redo
        assert manager.undo() is None
        assert manager.redo() is None

    def test_depth_limit_evicts_oldest(self, graph, undo_manager):
        for i in range(25):
            graph.create_node({"id": f"n{i}"})
        assert undo_manager.undo_depth == 20

        while undo_manager.undo() is not None:
            pass
        # The five oldest creations can no longer be undone
        assert sorted(n.id for n in graph.get_nodes()) == [f"n{i}" for i in range(5)]

    def test_push_after_undo_clears_redo(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        undo_manager.undo()
        assert undo_manager.can_redo
        graph.create_node({"id": "b"})
        assert not undo_manager.can_redo

    def test_descriptions(self, graph, undo_manager):
        graph.create_node({"id": "a", "text": "A rather long node title here"})
        assert undo_manager.undo_description == "Create node 'A rather long node t...'"
        undo_manager.undo()
        assert undo_manager.redo_description.startswith("Create node")

    def test_state_changed_callback(self, graph, undo_manager):
        calls = []
        undo_manager.on_state_changed = lambda: calls.append(1)
        graph.create_node()
        undo_manager.undo()
        undo_manager.redo()
        assert len(calls) == 3

    def test_action_types(self):
        assert CreateNodeAction(Node()).action_type == ActionType.CREATE_NODE
        assert BatchAction(()).action_type == ActionType.BATCH


class TestReplay:
    def test_create_delete_undo_restores_node(self, graph, undo_manager):
        node = graph.create_node({"text": "Keep me", "x": 12, "y": 34})
        graph.delete_node(node.id)
        assert node.id not in graph

        undo_manager.undo()
        restored = graph.get_node(node.id)
        assert restored is not None
        assert (restored.id, restored.text, restored.x, restored.y) == \
            (node.id, "Keep me", 12, 34)

    def test_delete_undo_restores_edges(self, graph, undo_manager, star):
        graph.delete_node("hub")
        undo_manager.undo()
        assert graph.has_edge("hub", "a")
        assert graph.has_edge("hub", "b")

    def test_move_undo_redo(self, graph, undo_manager):
        node = graph.create_node({"x": 0, "y": 0})
        graph.move_node(node.id, 50, 60)
        undo_manager.undo()
        assert (node.x, node.y) == (0, 0)
        undo_manager.redo()
        assert (node.x, node.y) == (50, 60)

    def test_text_undo(self, graph, undo_manager):
        node = graph.create_node({"text": "before"})
        graph.update_node_text(node.id, "after")
        undo_manager.undo()
        assert node.text == "before"

    def test_unchanged_text_is_not_recorded(self, graph, undo_manager):
        node = graph.create_node({"text": "same"})
        depth = undo_manager.undo_depth
        graph.update_node_text(node.id, "same")
        assert undo_manager.undo_depth == depth

    def test_edge_undo_redo(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        graph.create_node({"id": "b"})
        edge = graph.create_edge("a", "b")
        undo_manager.undo()
        assert graph.get_edge(edge.id) is None
        undo_manager.redo()
        assert graph.get_edge(edge.id) is not None

    def test_label_undo(self, graph, undo_manager, star):
        edge = graph.get_edges()[0]
        graph.update_edge_label(edge.id, "uses")
        undo_manager.undo()
        assert graph.get_edge(edge.id).label == ""

    def test_replay_is_not_recorded(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        undo_manager.undo()
        assert undo_manager.undo_depth == 0
        assert undo_manager.redo_depth == 1


class TestBatch:
    def test_batch_is_one_entry(self, graph, undo_manager):
        with undo_manager.batch("Add pair"):
            graph.create_node({"id": "a"})
            graph.create_node({"id": "b"})
            graph.create_edge("a", "b")
        assert undo_manager.undo_depth == 1
        assert undo_manager.undo_description == "Add pair"

        undo_manager.undo()
        assert len(graph) == 0
        undo_manager.redo()
        assert len(graph) == 2
        assert graph.has_edge("a", "b")

    def test_nested_batches_fold(self, graph, undo_manager):
        with undo_manager.batch("outer"):
            graph.create_node({"id": "a"})
            with undo_manager.batch("inner"):
                graph.create_node({"id": "b"})
        assert undo_manager.undo_depth == 1
        assert len(undo_manager._undo_stack[0].actions) == 2

    def test_empty_batch_records_nothing(self, undo_manager):
        with undo_manager.batch("nothing"):
            pass
        assert not undo_manager.can_undo

    def test_failed_batch_rolls_back(self, graph, undo_manager):
        with undo_manager.batch("pair"):
            graph.create_node({"id": "a"})
            graph.create_node({"id": "b"})
        # Something outside history removes b
        graph.delete_node("b", record=False)

        assert undo_manager.undo() is None
        # Reverse replay fails on b before touching a
        assert "a" in graph
        assert isinstance(undo_manager.last_error, ReplayError)

    def test_rollback_of_partial_batch(self, graph, undo_manager):
        with undo_manager.batch("pair"):
            graph.create_node({"id": "a"})
            graph.create_node({"id": "b"})
        # Reverse replay deletes b, then fails on a
        graph.delete_node("a", record=False)

        assert undo_manager.undo() is None
        assert "b" in graph
        assert not undo_manager.can_undo


class TestReplayFailure:
    def test_failure_is_reported_and_discarded(self, graph, undo_manager, caplog):
        failures = []
        undo_manager.on_replay_failed = lambda action, error: failures.append((action, error))
        node = graph.create_node({"id": "a"})
        graph.delete_node(node.id, record=False)

        with caplog.at_level(logging.ERROR, logger="brainstorm.undo"):
            assert undo_manager.undo() is None

        assert len(failures) == 1
        assert failures[0][0].action_type == ActionType.CREATE_NODE
        assert not undo_manager.can_undo
        assert not undo_manager.can_redo
        assert "Failed to undo" in caplog.text

    def test_redo_failure(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        graph.move_node("a", 5, 5)
        undo_manager.undo()
        graph.delete_node("a", record=False)

        assert undo_manager.redo() is None
        assert undo_manager.last_error is not None
        assert not undo_manager.can_redo

    def test_direct_actions(self, graph, undo_manager):
        graph.create_node({"id": "a", "text": "one"}, record=False)
        undo_manager.push(EditNodeTextAction("a", "zero", "one"))
        undo_manager.push(MoveNodeAction("a", 0, 0, 0, 0))
        undo_manager.undo()
        undo_manager.undo()
        assert graph.get_node("a").text == "zero"

    def test_redo_over_existing_id_fails(self, graph, undo_manager):
        graph.create_node({"id": "a", "text": "first"})
        undo_manager.undo()
        graph.create_node({"id": "a", "text": "second"}, record=False)

        assert undo_manager.redo() is None
        assert graph.get_node("a").text == "second"

    def test_failed_node_restore_leaves_nothing_behind(self, graph, undo_manager):
        graph.create_node({"id": "a"}, record=False)
        graph.create_node({"id": "b"}, record=False)
        graph.create_edge("a", "b", record=False)
        graph.delete_node("a")
        # The edge snapshot now points at a node that no longer exists
        graph.delete_node("b", record=False)

        assert undo_manager.undo() is None
        assert undo_manager.last_error is not None
        assert len(graph) == 0
        assert graph.get_edges() == []

    def test_failed_node_restore_inside_batch(self, graph, undo_manager):
        for node_id in ("a", "b", "c"):
            graph.create_node({"id": node_id}, record=False)
        graph.create_edge("a", "c", record=False)
        with undo_manager.batch("Delete 2 node(s)"):
            graph.delete_node("a")
            graph.delete_node("b")
        graph.delete_node("c", record=False)

        # b is restored first, then a fails on its edge and both are removed again
        assert undo_manager.undo() is None
        assert len(graph) == 0
        assert graph.get_edges() == []
        assert not undo_manager.can_undo
        assert not undo_manager.can_redo

    def test_unattached_manager_does_nothing(self):
        manager = UndoManager()
        manager.push(CreateNodeAction(Node(id="x")))
        assert manager.undo() is None
        assert manager.can_undo

    def test_edge_snapshot_is_detached(self, graph, undo_manager, star):
        edge = graph.get_edges()[0]
        graph.delete_edge(edge.id)
        edge.label = "mutated after delete"
        undo_manager.undo()
        assert graph.get_edge(edge.id).label == ""

    def test_replay_error_carries_action(self):
        action = CreateNodeAction(Node(id="x"))
        error = ReplayError("boom", action)
        assert error.action is action
        assert str(error) == "boom"


class TestDiscard:
    def test_discard_matching_creation(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        graph.create_node({"id": "b"})
        dropped = undo_manager.discard_last(lambda action: creates_node(action, "b"))
        assert dropped.action_type == ActionType.CREATE_NODE
        assert undo_manager.undo_depth == 1

    def test_discard_ignores_older_entries(self, graph, undo_manager):
        graph.create_node({"id": "a"})
        graph.create_node({"id": "b"})
        assert undo_manager.discard_last(lambda action: creates_node(action, "a")) is None
        assert undo_manager.undo_depth == 2

    def test_creates_node_looks_inside_batches(self, graph, undo_manager):
        with undo_manager.batch("pair"):
            graph.create_node({"id": "a"})
            graph.create_node({"id": "b"})
        batch = undo_manager._undo_stack[-1]
        assert creates_node(batch, "b")
        assert not creates_node(batch, "c")
        assert not creates_node(MoveNodeAction("b", 0, 0, 1, 1), "b")
