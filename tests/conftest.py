"""Shared fixtures for tests."""

import pytest

from brainstorm.editor import Editor
from brainstorm.graph import GraphModel
from brainstorm.renderer import SceneRenderer
from brainstorm.scheduler import ManualScheduler
from brainstorm.selection import SelectionState
from brainstorm.settings import Settings
from brainstorm.simulation import ForceSimulation
from brainstorm.text import TextLayout
from brainstorm.undo import UndoManager


CHAR_WIDTH = 8.0


def fixed_width(text: str) -> float:
    """Every character is CHAR_WIDTH wide."""
    return len(text) * CHAR_WIDTH


@pytest.fixture
def measurer():
    return fixed_width


@pytest.fixture
def layout() -> TextLayout:
    """Text layout that never touches cairo fonts."""
    return TextLayout(measurer=fixed_width)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def undo_manager() -> UndoManager:
    return UndoManager(max_depth=20)


@pytest.fixture
def graph(layout, undo_manager) -> GraphModel:
    """Graph with immediate notifications and history."""
    return GraphModel(layout, undo_manager)


@pytest.fixture
def selection(graph) -> SelectionState:
    return SelectionState(graph)


@pytest.fixture
def simulation(graph, scheduler) -> ForceSimulation:
    return ForceSimulation(graph, scheduler)


@pytest.fixture
def renderer(graph, selection) -> SceneRenderer:
    return SceneRenderer(graph, selection, width=800, height=600)


@pytest.fixture
def editor(scheduler, layout) -> Editor:
    ed = Editor(scheduler, Settings(), layout)
    yield ed
    ed.dispose()


@pytest.fixture
def star(graph):
    """Hub with two leaves, unrecorded."""
    hub = graph.create_node({"id": "hub", "text": "Hub", "x": 0, "y": 0}, record=False)
    a = graph.create_node({"id": "a", "text": "Alpha", "x": 300, "y": 0}, record=False)
    b = graph.create_node({"id": "b", "text": "Beta", "x": 0, "y": 300}, record=False)
    graph.create_edge("hub", "a", record=False)
    graph.create_edge("hub", "b", record=False)
    return hub, a, b
