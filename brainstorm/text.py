"""Text measurement, wrapping and node sizing."""

from collections import OrderedDict
from typing import Callable, List, NamedTuple, Optional, Tuple

import cairo

from brainstorm.model import NodeState


LINE_HEIGHT = 20
PADDING_X = 16
PADDING_Y = 12
MIN_WIDTH = 80
MIN_HEIGHT = 40
EMPTY_SIZE = (160.0, 44.0)
COLLAPSED_WRAP = 200
EXPANDED_WRAP = 400
MAX_COLLAPSED_LINES = 3
CACHE_SIZE = 500

FONT_FACE = "Sans"
FONT_SIZE = 14


class TextMetrics(NamedTuple):
    """Result of wrapping a piece of text."""
    width: float
    height: float
    lines: Tuple[str, ...]


class CairoTextMeasurer:
    """Measures string advance widths with a scratch cairo context."""

    def __init__(self, font_face: str = FONT_FACE, font_size: float = FONT_SIZE):
        self.font_face = font_face
        self.font_size = font_size
        self._surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, 1, 1)
        self._cr = cairo.Context(self._surface)
        self._cr.select_font_face(font_face, cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        self._cr.set_font_size(font_size)

    @property
    def key(self) -> str:
        return f"{self.font_face}:{self.font_size}"

    def __call__(self, text: str) -> float:
        if not text:
            return 0.0
        return self._cr.text_extents(text).x_advance


class TextLayout:
    """Word wrapping with a bounded measurement cache."""

    def __init__(self, measurer: Optional[Callable[[str], float]] = None,
                 cache_size: int = CACHE_SIZE):
        self.measurer = measurer or CairoTextMeasurer()
        self.cache_size = cache_size
        self._cache: "OrderedDict[Tuple[str, float], TextMetrics]" = OrderedDict()

    def clear_cache(self):
        """Forget all cached measurements."""
        self._cache.clear()

    @property
    def cache_len(self) -> int:
        return len(self._cache)

    def measure(self, text: str, max_width: float = COLLAPSED_WRAP) -> TextMetrics:
        """Wrap text to max_width and report the resulting block size."""
        key = (text, max_width)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        lines = self._wrap(text, max_width)
        widest = max(self.measurer(line) for line in lines)
        result = TextMetrics(
            width=min(widest, max_width),
            height=len(lines) * LINE_HEIGHT,
            lines=tuple(lines),
        )

        # Evict in insertion order
        if len(self._cache) >= self.cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = result
        return result

    def _wrap(self, text: str, max_width: float) -> List[str]:
        lines: List[str] = []
        for paragraph in text.split("\n"):
            if paragraph == "":
                lines.append("")
                continue

            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if current and self.measurer(candidate) > max_width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            if current:
                lines.append(current)

        if not lines:
            lines.append("")
        return lines

    def truncate(self, text: str, max_lines: int,
                 max_width: float = COLLAPSED_WRAP) -> Tuple[str, bool]:
        """Cut text to max_lines, ending the last kept line with an ellipsis."""
        metrics = self.measure(text, max_width)
        if len(metrics.lines) <= max_lines:
            return text, False

        kept = list(metrics.lines[:max_lines])
        kept[-1] = kept[-1][:-3] + "..."
        return "\n".join(kept), True

    def node_size(self, text: str, state: NodeState) -> Tuple[float, float]:
        """Width and height of a node showing text in the given state."""
        if not text:
            return EMPTY_SIZE

        wrap = wrap_width(state)
        metrics = self.measure(text, wrap)
        w = max(MIN_WIDTH, metrics.width + PADDING_X * 2)
        h = max(MIN_HEIGHT, metrics.height + PADDING_Y * 2)

        if state != NodeState.ACTIVE and len(metrics.lines) > MAX_COLLAPSED_LINES:
            h = MAX_COLLAPSED_LINES * LINE_HEIGHT + PADDING_Y * 2
        return float(w), float(h)


def wrap_width(state: NodeState) -> int:
    """Wrap width for a node state."""
    return EXPANDED_WRAP if state.is_expanded else COLLAPSED_WRAP


def sizing_regime(state: NodeState) -> str:
    """Name of the sizing rule a state uses; states sharing one size identically."""
    if state == NodeState.ACTIVE:
        return "expanded"
    if state == NodeState.EDITABLE:
        return "editing"
    return "collapsed"
