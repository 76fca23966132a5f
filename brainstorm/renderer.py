"""Scene renderer: reconciles the graph into drawable elements."""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple

import cairo

from brainstorm.geometry import (
    Point,
    bounding_box,
    rect_edge_point,
    sample_quadratic,
    segment_distance,
)
from brainstorm.graph import GraphModel
from brainstorm.model import Node, NodeState, ViewTransform, clamp_scale
from brainstorm.selection import SelectionState
from brainstorm.settings import RendererSettings
from brainstorm.text import FONT_FACE, FONT_SIZE, LINE_HEIGHT, MAX_COLLAPSED_LINES, PADDING_X, PADDING_Y, wrap_width

logger = logging.getLogger(__name__)


class EdgePath(NamedTuple):
    """Quadratic curve between two node boundaries."""
    start: Point
    control: Point
    end: Point
    label: Point


def edge_path(source: Node, target: Node, padding: float = 4.0) -> EdgePath:
    """Route an edge from the source boundary to the target boundary."""
    start = rect_edge_point((source.x, source.y), (target.x, target.y),
                            source.w, source.h, padding)
    end = rect_edge_point((target.x, target.y), (source.x, source.y),
                          target.w, target.h, padding)

    dx = end.x - start.x
    dy = end.y - start.y
    dist = math.hypot(dx, dy)
    mid = Point((start.x + end.x) / 2, (start.y + end.y) / 2)
    if dist == 0:
        return EdgePath(start, mid, end, mid)

    bend = min(dist * 0.3, 50) * 0.2
    control = Point(mid.x - dy / dist * bend, mid.y + dx / dist * bend)
    return EdgePath(start, control, end, mid)


class LabelMode(Enum):
    """How an edge label is shown."""
    NONE = "none"
    FULL = "full"
    BADGE = "badge"


class RenderStats(NamedTuple):
    created: int
    updated: int
    removed: int


@dataclass
class NodeElement:
    """Drawable state for one node. Identity is stable across renders."""
    id: str
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0
    text: str = ""
    state: NodeState = NodeState.INACTIVE
    lines: Tuple[str, ...] = ()


@dataclass
class EdgeElement:
    """Drawable state for one edge."""
    id: str
    source_id: str = ""
    target_id: str = ""
    path: Optional[EdgePath] = None
    label: str = ""
    label_mode: LabelMode = LabelMode.NONE
    selected: bool = False
    emphasized: bool = False


@dataclass
class _Press:
    kind: str
    target_id: Optional[str]
    sx: float
    sy: float
    cx: float
    cy: float
    draggable: bool = True
    dragging: bool = False
    consumed: bool = False


class SceneRenderer:
    """Maps the graph to drawable elements, owns the view and raises pointer intents."""

    # Colors
    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
        'surface': (0.118, 0.118, 0.118),         # #1e1e1e
        'surface_active': (0.145, 0.145, 0.145),  # #252525
        'border_subtle': (0.165, 0.165, 0.165),   # #2a2a2a
        'border_active': (1.0, 0.176, 0.176),     # #ff2d2d
        'text_primary': (0.878, 0.878, 0.878),    # #e0e0e0
        'text_muted': (0.533, 0.533, 0.533),      # #888888
        'edge': (0.4, 0.4, 0.4),                  # #666666
        'edge_selected': (0.129, 0.588, 0.953),   # #2196f3
        'multi_selected': (1.0, 0.667, 0.0),      # #ffaa00
        'selection_fill': (0.129, 0.588, 0.953),
        'grid_dots': (0.12, 0.12, 0.12),
    }

    NODE_RADIUS = 8
    LABEL_SIZE = (60, 20)
    BADGE_SIZE = (24, 16)
    ARROW_SIZE = 8
    GRID_SIZE = 30

    def __init__(self, graph: GraphModel, selection: SelectionState,
                 settings: Optional[RendererSettings] = None,
                 width: float = 800, height: float = 600):
        self.graph = graph
        self.selection = selection
        self.settings = settings or RendererSettings()
        self.width = width
        self.height = height
        self.view = ViewTransform()
        self.node_elements: Dict[str, NodeElement] = {}
        self.edge_elements: Dict[str, EdgeElement] = {}
        self.show_grid = True
        self.caret_visible = True
        self._press: Optional[_Press] = None
        self._disposed = False

        # Callbacks
        self.on_view_changed: Optional[Callable[[], None]] = None
        self.on_node_click: Optional[Callable[[str], None]] = None
        self.on_node_double_click: Optional[Callable[[str], None]] = None
        self.on_node_drag_start: Optional[Callable[[str, float, float], None]] = None
        self.on_node_drag: Optional[Callable[[str, float, float, float, float], None]] = None
        self.on_node_drag_end: Optional[Callable[[str, float, float], None]] = None
        self.on_edge_click: Optional[Callable[[str], None]] = None
        self.on_canvas_click: Optional[Callable[[float, float], None]] = None
        self.on_canvas_drag_start: Optional[Callable[[float, float], None]] = None
        self.on_canvas_drag: Optional[Callable[[float, float], None]] = None
        self.on_canvas_drag_end: Optional[Callable[[float, float], None]] = None

    # ==================== View ====================

    def _clamp(self, scale: float) -> float:
        return clamp_scale(scale, self.settings.min_scale, self.settings.max_scale)

    def set_view(self, x: float, y: float, scale: float):
        self.view = ViewTransform(x, y, self._clamp(scale))
        self._view_changed()

    def pan_by(self, dx: float, dy: float):
        """Shift the view by a screen-space offset."""
        self.set_view(self.view.x + dx, self.view.y + dy, self.view.scale)

    def zoom_at(self, sx: float, sy: float, factor: float):
        """Zoom by factor keeping the canvas point under (sx, sy) fixed."""
        cx, cy = self.view.screen_to_canvas(sx, sy)
        scale = self._clamp(self.view.scale * factor)
        self.set_view(sx - cx * scale, sy - cy * scale, scale)

    def screen_to_canvas(self, sx: float, sy: float) -> Tuple[float, float]:
        return self.view.screen_to_canvas(sx, sy)

    def canvas_to_screen(self, cx: float, cy: float) -> Tuple[float, float]:
        return self.view.canvas_to_screen(cx, cy)

    def resize(self, width: float, height: float):
        self.width = width
        self.height = height

    def fit_view(self, padding: Optional[float] = None):
        """Scale and centre the view so every node is visible, never above 1:1."""
        if padding is None:
            padding = self.settings.fit_padding

        bounds = bounding_box(n.rect for n in self.graph.get_nodes())
        if bounds is None:
            self.set_view(0.0, 0.0, 1.0)
            return

        graph_w = bounds.width + padding * 2
        graph_h = bounds.height + padding * 2
        scale = self._clamp(min(self.width / graph_w, self.height / graph_h, 1.0))
        center = bounds.center
        self.set_view(self.width / 2 - center.x * scale,
                      self.height / 2 - center.y * scale,
                      scale)

    def center_on_node(self, node_id: str) -> bool:
        node = self.graph.get_node(node_id)
        if node is None:
            return False
        scale = self.view.scale
        self.set_view(self.width / 2 - node.x * scale,
                      self.height / 2 - node.y * scale,
                      scale)
        return True

    def visible_center(self) -> Tuple[float, float]:
        """Canvas point at the middle of the viewport."""
        return self.screen_to_canvas(self.width / 2, self.height / 2)

    def _view_changed(self):
        if self.on_view_changed:
            self.on_view_changed()

    # ==================== Reconciliation ====================

    def render(self) -> RenderStats:
        """Bring the element maps in line with the graph."""
        if self._disposed:
            return RenderStats(0, 0, 0)

        created = updated = removed = 0
        active_id = self.selection.active_node_id
        selected_edge_id = self.selection.selected_edge_id

        seen = set()
        for node in self.graph.get_nodes():
            seen.add(node.id)
            element = self.node_elements.get(node.id)
            if element is None:
                element = NodeElement(node.id)
                self.node_elements[node.id] = element
                created += 1
            else:
                updated += 1
            self._update_node_element(element, node)

        for node_id in [i for i in self.node_elements if i not in seen]:
            del self.node_elements[node_id]
            removed += 1

        seen = set()
        for edge in self.graph.get_edges():
            source = self.graph.get_node(edge.source_id)
            target = self.graph.get_node(edge.target_id)
            if source is None or target is None:
                continue
            seen.add(edge.id)

            element = self.edge_elements.get(edge.id)
            if element is None:
                element = EdgeElement(edge.id)
                self.edge_elements[edge.id] = element
                created += 1
            else:
                updated += 1

            element.source_id = edge.source_id
            element.target_id = edge.target_id
            element.path = edge_path(source, target, self.settings.edge_anchor_padding)
            element.label = edge.label
            element.selected = edge.id == selected_edge_id
            element.emphasized = element.selected or edge.touches(active_id)
            if not edge.label:
                element.label_mode = LabelMode.NONE
            elif element.emphasized:
                element.label_mode = LabelMode.FULL
            else:
                element.label_mode = LabelMode.BADGE

        for edge_id in [i for i in self.edge_elements if i not in seen]:
            del self.edge_elements[edge_id]
            removed += 1

        return RenderStats(created, updated, removed)

    def _update_node_element(self, element: NodeElement, node: Node):
        element.x = node.x
        element.y = node.y
        element.w = node.w
        element.h = node.h
        element.text = node.text
        element.state = node.state

        layout = self.graph.layout
        if node.state == NodeState.ACTIVE:
            element.lines = layout.measure(node.text, wrap_width(node.state)).lines
        elif node.state == NodeState.EDITABLE:
            # Keep the lines being typed in view
            lines = layout.measure(node.text, wrap_width(node.state)).lines
            element.lines = lines[-MAX_COLLAPSED_LINES:]
        else:
            text, _ = layout.truncate(node.text, MAX_COLLAPSED_LINES, wrap_width(node.state))
            element.lines = tuple(text.split("\n"))

    def dispose(self):
        self.node_elements.clear()
        self.edge_elements.clear()
        self._press = None
        self._disposed = True
        for name in list(vars(self)):
            if name.startswith("on_"):
                setattr(self, name, None)

    # ==================== Hit Testing ====================

    def node_at(self, sx: float, sy: float) -> Optional[str]:
        cx, cy = self.screen_to_canvas(sx, sy)
        node = self.graph.node_at(cx, cy)
        return node.id if node else None

    def edge_at(self, sx: float, sy: float) -> Optional[str]:
        """Edge whose curve passes within the hit tolerance of a screen point."""
        point = self.screen_to_canvas(sx, sy)
        tolerance = self.settings.edge_hit_tolerance
        best_id = None
        best = tolerance
        for edge in self.graph.get_edges():
            source = self.graph.get_node(edge.source_id)
            target = self.graph.get_node(edge.target_id)
            if source is None or target is None:
                continue
            path = edge_path(source, target, self.settings.edge_anchor_padding)
            samples = sample_quadratic(path.start, path.control, path.end)
            for a, b in zip(samples, samples[1:]):
                d = segment_distance(point, a, b)
                if d <= best:
                    best = d
                    best_id = edge.id
        return best_id

    def hit_test(self, sx: float, sy: float) -> Tuple[str, Optional[str]]:
        """('node', id), ('edge', id) or ('canvas', None). Nodes win."""
        node_id = self.node_at(sx, sy)
        if node_id is not None:
            return "node", node_id
        edge_id = self.edge_at(sx, sy)
        if edge_id is not None:
            return "edge", edge_id
        return "canvas", None

    # ==================== Pointer Intents ====================

    def pointer_down(self, sx: float, sy: float, n_press: int = 1):
        kind, target_id = self.hit_test(sx, sy)
        cx, cy = self.screen_to_canvas(sx, sy)
        press = _Press(kind, target_id, sx, sy, cx, cy)

        if kind == "node":
            node = self.graph.get_node(target_id)
            press.draggable = node is not None and node.state != NodeState.EDITABLE
            if n_press >= 2:
                press.consumed = True
                if self.on_node_double_click:
                    self.on_node_double_click(target_id)
        elif kind == "edge":
            press.draggable = False

        self._press = press

    def pointer_move(self, sx: float, sy: float):
        press = self._press
        if press is None:
            return
        cx, cy = self.screen_to_canvas(sx, sy)

        if not press.dragging:
            if not press.draggable or press.consumed:
                return
            moved = math.hypot(sx - press.sx, sy - press.sy)
            if moved <= self.settings.drag_threshold:
                return
            press.dragging = True
            if press.kind == "node":
                if self.on_node_drag_start:
                    self.on_node_drag_start(press.target_id, press.cx, press.cy)
            elif self.on_canvas_drag_start:
                self.on_canvas_drag_start(press.cx, press.cy)

        dx = cx - press.cx
        dy = cy - press.cy
        press.cx = cx
        press.cy = cy
        if press.kind == "node":
            if self.on_node_drag:
                self.on_node_drag(press.target_id, cx, cy, dx, dy)
        elif self.on_canvas_drag:
            self.on_canvas_drag(cx, cy)

    def pointer_up(self, sx: float, sy: float):
        press = self._press
        self._press = None
        if press is None:
            return
        cx, cy = self.screen_to_canvas(sx, sy)

        if press.dragging:
            if press.kind == "node":
                if self.on_node_drag_end:
                    self.on_node_drag_end(press.target_id, cx, cy)
            elif self.on_canvas_drag_end:
                self.on_canvas_drag_end(cx, cy)
            return

        if press.consumed:
            return
        if press.kind == "node":
            if self.on_node_click:
                self.on_node_click(press.target_id)
        elif press.kind == "edge":
            if self.on_edge_click:
                self.on_edge_click(press.target_id)
        elif self.on_canvas_click:
            self.on_canvas_click(cx, cy)

    @property
    def is_pointer_dragging(self) -> bool:
        return self._press is not None and self._press.dragging

    # ==================== Drawing ====================

    def draw(self, cr):
        """Paint the last reconciled scene onto a cairo context."""
        cr.save()

        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()

        if self.show_grid:
            self._draw_grid(cr)

        cr.translate(self.view.x, self.view.y)
        cr.scale(self.view.scale, self.view.scale)

        # Edges behind nodes
        for element in self.edge_elements.values():
            self._draw_edge(cr, element)
        for element in self.node_elements.values():
            self._draw_node(cr, element)
        self._draw_overlay(cr)

        cr.restore()

    def _draw_grid(self, cr):
        """Draw dot grid pattern."""
        cr.save()
        cr.set_source_rgb(*self.COLORS['grid_dots'])

        step = self.GRID_SIZE * self.view.scale
        if step < 4:
            cr.restore()
            return

        x = self.view.x % step
        while x < self.width:
            y = self.view.y % step
            while y < self.height:
                cr.arc(x, y, 1.5, 0, 2 * math.pi)
                cr.fill()
                y += step
            x += step

        cr.restore()

    def _draw_edge(self, cr, element: EdgeElement):
        path = element.path
        if path is None:
            return

        color = self.COLORS['edge_selected'] if element.selected else self.COLORS['edge']
        opacity = 1.0 if element.emphasized else 0.5

        cr.save()
        cr.set_source_rgba(*color, opacity)
        cr.set_line_width(2.5 if element.selected else 1.5)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)

        # Quadratic to cubic conversion for cairo
        s, c, e = path.start, path.control, path.end
        cr.move_to(s.x, s.y)
        cr.curve_to(s.x + 2 / 3 * (c.x - s.x), s.y + 2 / 3 * (c.y - s.y),
                    e.x + 2 / 3 * (c.x - e.x), e.y + 2 / 3 * (c.y - e.y),
                    e.x, e.y)
        cr.stroke()

        self._draw_arrow(cr, c, e)
        cr.restore()

        if element.label_mode == LabelMode.FULL:
            self._draw_label(cr, path.label, element.label)
        elif element.label_mode == LabelMode.BADGE:
            self._draw_badge(cr, path.label)

    def _draw_arrow(self, cr, towards: Point, tip: Point):
        angle = math.atan2(tip.y - towards.y, tip.x - towards.x)
        size = self.ARROW_SIZE
        cr.move_to(tip.x, tip.y)
        cr.line_to(tip.x - size * math.cos(angle - math.pi / 6),
                   tip.y - size * math.sin(angle - math.pi / 6))
        cr.line_to(tip.x - size * math.cos(angle + math.pi / 6),
                   tip.y - size * math.sin(angle + math.pi / 6))
        cr.close_path()
        cr.fill()

    def _draw_label(self, cr, at: Point, text: str):
        w, h = self.LABEL_SIZE
        cr.save()
        self._draw_rounded_rect(cr, at.x - w / 2, at.y - h / 2, w, h, 4)
        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.fill_preserve()
        cr.set_source_rgb(*self.COLORS['border_subtle'])
        cr.set_line_width(1)
        cr.stroke()

        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(12)
        extents = cr.text_extents(text)
        cr.set_source_rgb(*self.COLORS['text_primary'])
        cr.move_to(at.x - extents.x_advance / 2, at.y + 4)
        cr.show_text(text)
        cr.restore()

    def _draw_badge(self, cr, at: Point):
        w, h = self.BADGE_SIZE
        cr.save()
        self._draw_rounded_rect(cr, at.x - w / 2, at.y - h / 2, w, h, 8)
        cr.set_source_rgba(*self.COLORS['surface'], 0.7)
        cr.fill_preserve()
        cr.set_source_rgb(*self.COLORS['border_subtle'])
        cr.set_line_width(1)
        cr.stroke()

        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(10)
        extents = cr.text_extents("•••")
        cr.set_source_rgb(*self.COLORS['text_muted'])
        cr.move_to(at.x - extents.x_advance / 2, at.y + 3)
        cr.show_text("•••")
        cr.restore()

    def _draw_node(self, cr, element: NodeElement):
        """Draw a single node."""
        x = element.x - element.w / 2
        y = element.y - element.h / 2
        w, h = element.w, element.h
        state = element.state

        cr.save()
        self._draw_rounded_rect(cr, x, y, w, h, self.NODE_RADIUS)

        bg = self.COLORS['surface_active'] if state.is_expanded else self.COLORS['surface']
        cr.set_source_rgb(*bg)
        cr.fill_preserve()

        if state.is_expanded:
            cr.set_source_rgb(*self.COLORS['border_active'])
            cr.set_line_width(2)
        elif state == NodeState.MULTI_SELECTED:
            cr.set_source_rgb(*self.COLORS['multi_selected'])
            cr.set_line_width(2)
        else:
            cr.set_source_rgb(*self.COLORS['border_subtle'])
            cr.set_line_width(1)
        cr.stroke()

        # Clip text to the node body
        cr.rectangle(x, y, w, h)
        cr.clip()

        cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(FONT_SIZE)
        cr.set_source_rgb(*self.COLORS['text_primary'])

        baseline = y + PADDING_Y + LINE_HEIGHT - 5
        last_x = x + PADDING_X
        for line in element.lines:
            cr.move_to(x + PADDING_X, baseline)
            cr.show_text(line)
            last_x = x + PADDING_X + cr.text_extents(line).x_advance
            baseline += LINE_HEIGHT

        if state == NodeState.EDITABLE and self.caret_visible:
            caret_y = baseline - LINE_HEIGHT
            cr.set_source_rgb(*self.COLORS['border_active'])
            cr.set_line_width(2)
            cr.move_to(last_x + 1, caret_y - FONT_SIZE)
            cr.line_to(last_x + 1, caret_y + 4)
            cr.stroke()

        cr.restore()

    def _draw_overlay(self, cr):
        rect = self.selection.rect_selection
        if rect.active:
            bounds = self.selection.rect_selection_bounds()
            cr.save()
            cr.rectangle(bounds.min_x, bounds.min_y, bounds.width, bounds.height)
            cr.set_source_rgba(*self.COLORS['selection_fill'], 0.15)
            cr.fill_preserve()
            cr.set_source_rgb(*self.COLORS['selection_fill'])
            cr.set_line_width(1 / self.view.scale)
            cr.set_dash([4, 2])
            cr.stroke()
            cr.restore()

        creation = self.selection.edge_creation
        if creation.active:
            source = self.graph.get_node(creation.source_id)
            if source is not None:
                tip = Point(creation.cursor_x, creation.cursor_y)
                cr.save()
                cr.set_source_rgb(*self.COLORS['edge_selected'])
                cr.set_line_width(2)
                cr.set_dash([6, 4])
                cr.move_to(source.x, source.y)
                cr.line_to(tip.x, tip.y)
                cr.stroke()
                cr.set_dash([])
                self._draw_arrow(cr, Point(source.x, source.y), tip)
                cr.restore()

    def _draw_rounded_rect(self, cr, x: float, y: float, w: float, h: float, radius: float):
        """Draw a rounded rectangle path."""
        cr.new_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()
