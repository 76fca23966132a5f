"""Core data records for Brainstorm diagrams."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from brainstorm.geometry import Rect


MIN_SCALE = 0.1
MAX_SCALE = 4.0


class NodeState(str, Enum):
    """Interaction state of a node."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    EDITABLE = "editable"
    MULTI_SELECTED = "multi_selected"

    @property
    def is_expanded(self) -> bool:
        return self in (NodeState.ACTIVE, NodeState.EDITABLE)


def generate_id() -> str:
    """Generate a unique entity id."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current wall time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Node:
    """A positioned, sized text node. x/y is the centre."""
    id: str = field(default_factory=generate_id)
    text: str = ""
    x: float = 0.0
    y: float = 0.0
    w: float = 160.0
    h: float = 44.0
    state: NodeState = NodeState.INACTIVE
    created_at: int = 0
    updated_at: int = 0
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)

    def copy(self) -> "Node":
        """Detached copy, safe to keep in history."""
        return Node(
            id=self.id,
            text=self.text,
            x=self.x,
            y=self.y,
            w=self.w,
            h=self.h,
            state=self.state,
            created_at=self.created_at,
            updated_at=self.updated_at,
            meta=dict(self.meta),
        )

    def to_json(self, include_layout: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if include_layout:
            data["x"] = self.x
            data["y"] = self.y
        return data


@dataclass
class Edge:
    """A directed, optionally labelled connection between two node ids."""
    source_id: str
    target_id: str
    id: str = field(default_factory=generate_id)
    label: str = ""
    control_points: List[Tuple[float, float]] = field(default_factory=list)
    style: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> "Edge":
        """Detached copy, safe to keep in history."""
        return Edge(
            source_id=self.source_id,
            target_id=self.target_id,
            id=self.id,
            label=self.label,
            control_points=list(self.control_points),
            style=dict(self.style),
        )

    def touches(self, node_id: Optional[str]) -> bool:
        return node_id is not None and node_id in (self.source_id, self.target_id)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "sourceId": self.source_id,
            "targetId": self.target_id,
        }
        if self.label:
            data["label"] = self.label
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            source_id=data["sourceId"],
            target_id=data["targetId"],
            id=data.get("id") or generate_id(),
            label=data.get("label") or "",
            control_points=[tuple(p) for p in data.get("controlPoints") or []],
            style=dict(data.get("style") or {}),
        )


@dataclass
class ViewTransform:
    """Pan offset and zoom factor mapping canvas space to screen space."""
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def __post_init__(self):
        self.scale = clamp_scale(self.scale)

    def screen_to_canvas(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.x) / self.scale, (sy - self.y) / self.scale

    def canvas_to_screen(self, cx: float, cy: float) -> Tuple[float, float]:
        return cx * self.scale + self.x, cy * self.scale + self.y

    def to_json(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "scale": self.scale}

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "ViewTransform":
        if not data:
            return cls()
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            scale=float(data.get("scale", 1.0)),
        )


def clamp_scale(scale: float, low: float = MIN_SCALE, high: float = MAX_SCALE) -> float:
    """Clamp a zoom factor to the supported range."""
    return max(low, min(high, scale))
