"""Tests for data records."""

import pytest

from brainstorm.model import (
    MAX_SCALE,
    MIN_SCALE,
    Edge,
    Node,
    NodeState,
    ViewTransform,
    clamp_scale,
)


class TestNode:
    def test_copy_is_detached(self):
        node = Node(id="n1", text="Idea", meta={"color": "red"})
        clone = node.copy()
        clone.meta["color"] = "blue"
        clone.text = "Other"
        assert node.meta == {"color": "red"}
        assert node.text == "Idea"

    def test_to_json_uses_camel_case(self):
        node = Node(id="n1", text="Idea", x=10, y=20, created_at=1, updated_at=2)
        assert node.to_json() == {
            "id": "n1", "text": "Idea", "createdAt": 1, "updatedAt": 2, "x": 10, "y": 20,
        }

    def test_to_json_without_layout(self):
        data = Node(id="n1", text="Idea", x=10, y=20).to_json(include_layout=False)
        assert "x" not in data
        assert "y" not in data

    def test_rect_is_centre_based(self):
        node = Node(x=100, y=50, w=80, h=40)
        assert node.rect.left == 60
        assert node.rect.top == 30

    def test_expanded_states(self):
        assert NodeState.ACTIVE.is_expanded
        assert NodeState.EDITABLE.is_expanded
        assert not NodeState.INACTIVE.is_expanded
        assert not NodeState.MULTI_SELECTED.is_expanded

    def test_state_accepts_string_value(self):
        assert NodeState("active") is NodeState.ACTIVE


class TestEdge:
    def test_label_omitted_when_empty(self):
        edge = Edge("a", "b", id="e1")
        assert edge.to_json() == {"id": "e1", "sourceId": "a", "targetId": "b"}

    def test_from_json(self):
        edge = Edge.from_json({"id": "e1", "sourceId": "a", "targetId": "b", "label": "uses"})
        assert edge.id == "e1"
        assert edge.source_id == "a"
        assert edge.target_id == "b"
        assert edge.label == "uses"

    def test_from_json_generates_missing_id(self):
        edge = Edge.from_json({"sourceId": "a", "targetId": "b"})
        assert edge.id

    def test_from_json_requires_endpoints(self):
        with pytest.raises(KeyError):
            Edge.from_json({"sourceId": "a"})

    def test_touches(self):
        edge = Edge("a", "b")
        assert edge.touches("a")
        assert edge.touches("b")
        assert not edge.touches("c")
        assert not edge.touches(None)


class TestViewTransform:
    def test_round_trip(self):
        view = ViewTransform(120, -40, 1.7)
        cx, cy = view.screen_to_canvas(333, 444)
        sx, sy = view.canvas_to_screen(cx, cy)
        assert sx == pytest.approx(333)
        assert sy == pytest.approx(444)

    def test_scale_is_clamped(self):
        assert ViewTransform(scale=100).scale == MAX_SCALE
        assert ViewTransform(scale=0.001).scale == MIN_SCALE

    def test_from_json_defaults(self):
        assert ViewTransform.from_json(None) == ViewTransform()
        assert ViewTransform.from_json({"x": 5}).x == 5

    def test_clamp_scale_custom_range(self):
        assert clamp_scale(3.0, 0.5, 2.0) == 2.0
        assert clamp_scale(0.1, 0.5, 2.0) == 0.5
