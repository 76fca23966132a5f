"""Force-directed layout engine.

Nodes are particles pushed around by four competing forces: many-body
repulsion, springs along edges, collision between node bounds and a weak
pull toward the centre. Energy (alpha) decays every tick until the layout
cools below alpha_min, or until the settle timer cuts it off.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from brainstorm.graph import GraphModel
from brainstorm.scheduler import Scheduler
from brainstorm.settings import SimulationSettings

logger = logging.getLogger(__name__)


@dataclass
class Particle:
    """Simulation body for one node."""
    id: str
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    w: float = 0.0
    h: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None


@dataclass
class Spring:
    """Simulation link for one edge."""
    source_id: str
    target_id: str
    strength: float = 0.3
    distance: float = 250.0


class ForceSimulation:
    """Keeps the graph laid out, writing positions back to the model."""

    def __init__(self, graph: GraphModel, scheduler: Scheduler,
                 settings: Optional[SimulationSettings] = None,
                 seed: int = 0):
        self.graph = graph
        self.scheduler = scheduler
        self.settings = settings or SimulationSettings()
        self.particles: Dict[str, Particle] = {}
        self.springs: List[Spring] = []

        self.alpha = 0.0
        self.alpha_target = 0.0
        self.focused_node_id: Optional[str] = None
        self.center: Tuple[float, float] = (0.0, 0.0)

        self._running = False
        self._dragging = False
        self._disposed = False
        self._tick_source: Optional[int] = None
        self._settle_source: Optional[int] = None
        self._in_tick_timer = False
        self._random = random.Random(seed)

        # Callbacks
        self.on_tick: Optional[Callable[[], None]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    @property
    def has_settle_timer(self) -> bool:
        return self._settle_source is not None

    # ==================== Graph Sync ====================

    def update(self):
        """Rebuild particles and springs from the model, keeping motion and pins."""
        old = self.particles
        particles: Dict[str, Particle] = {}
        for node in self.graph.get_nodes():
            previous = old.get(node.id)
            particle = Particle(node.id, node.x, node.y, w=node.w, h=node.h)
            if previous is not None:
                particle.vx = previous.vx
                particle.vy = previous.vy
                particle.fx = previous.fx
                particle.fy = previous.fy
            particles[node.id] = particle
        self.particles = particles

        self.springs = [
            Spring(e.source_id, e.target_id)
            for e in self.graph.get_edges()
            if e.source_id in particles and e.target_id in particles
        ]
        self._refresh_springs()

    def _refresh_springs(self):
        for spring in self.springs:
            spring.strength = self.link_strength(spring)
            spring.distance = self.link_distance(spring)

    def sync_from_model(self):
        """Copy model positions and sizes onto existing particles."""
        for particle in self.particles.values():
            node = self.graph.get_node(particle.id)
            if node is not None:
                particle.x = node.x
                particle.y = node.y
                particle.w = node.w
                particle.h = node.h

    def sync_to_model(self):
        """Write every particle position to the model in one batch."""
        self.graph.apply_positions({p.id: (p.x, p.y) for p in self.particles.values()})

    # ==================== Force Parameters ====================

    def link_strength(self, spring: Spring) -> float:
        s = self.settings
        if self.focused_node_id is None:
            return s.default_link_strength
        if self.focused_node_id in (spring.source_id, spring.target_id):
            return s.focused_link_strength
        return s.unfocused_link_strength

    def link_distance(self, spring: Spring) -> float:
        s = self.settings
        if self.focused_node_id is not None and \
                self.focused_node_id in (spring.source_id, spring.target_id):
            return s.link_distance * s.focused_distance_factor
        return s.link_distance

    def collision_radius(self, particle: Particle) -> float:
        half_w = particle.w / 2
        half_h = particle.h / 2
        return math.sqrt(half_w * half_w + half_h * half_h) + self.settings.collision_padding

    def focus_node(self, node_id: str):
        """Tighten the springs around node_id and let the layout react."""
        self.focused_node_id = node_id
        self._refresh_springs()
        self.reheat(self.settings.reheat_alpha)

    def clear_focus(self):
        self.focused_node_id = None
        self._refresh_springs()

    def set_center(self, x: float, y: float):
        self.center = (x, y)

    # ==================== Pinning & Drag ====================

    def fix_node(self, node_id: str, x: float, y: float):
        particle = self.particles.get(node_id)
        if particle is not None:
            particle.fx = x
            particle.fy = y

    def release_node(self, node_id: str):
        particle = self.particles.get(node_id)
        if particle is not None:
            particle.fx = None
            particle.fy = None

    def start_drag(self, node_id: Optional[str] = None):
        """Keep the layout warm while the user drags."""
        self._cancel_settle()
        self._dragging = True
        self.alpha_target = self.settings.drag_alpha_target
        self._start()

    def end_drag(self):
        self._dragging = False
        self.alpha_target = 0.0
        self._arm_settle()

    # ==================== Lifecycle ====================

    def reheat(self, alpha: Optional[float] = None):
        """Inject energy and run for at most the settle time limit."""
        if self._disposed:
            return
        self.update()
        self.alpha = self.settings.reheat_alpha if alpha is None else alpha
        self._start()
        self._arm_settle()

    def restart(self):
        """Run again from full energy."""
        if self._disposed:
            return
        self.update()
        self.alpha = 1.0
        self._start()

    def stop(self):
        """Halt ticking. Safe to call repeatedly."""
        if self._tick_source is not None:
            if not self._in_tick_timer:
                self.scheduler.source_remove(self._tick_source)
            self._tick_source = None
        if self._running:
            logger.debug("Simulation stopped at alpha %.4f", self.alpha)
        self._running = False

    def dispose(self):
        self._cancel_settle()
        self.stop()
        self.particles = {}
        self.springs = []
        self.on_tick = None
        self._disposed = True

    def _start(self):
        if self._disposed:
            return
        if not self._running:
            logger.debug("Simulation started at alpha %.4f", self.alpha)
        self._running = True
        if self._tick_source is None:
            self._tick_source = self.scheduler.timeout_add(
                self.settings.tick_interval_ms, self._on_tick_timer)

    def _on_tick_timer(self) -> bool:
        self._in_tick_timer = True
        try:
            keep = self._running and self.tick()
        finally:
            self._in_tick_timer = False
        if not keep:
            self._tick_source = None
        return keep

    def _arm_settle(self):
        self._cancel_settle()
        self._settle_source = self.scheduler.timeout_add(
            self.settings.settle_time_limit_ms, self._on_settle_timeout)

    def _cancel_settle(self):
        if self._settle_source is not None:
            self.scheduler.source_remove(self._settle_source)
            self._settle_source = None

    def _on_settle_timeout(self) -> bool:
        self._settle_source = None
        logger.info("Layout settle limit reached, freezing positions")
        self.stop()
        return False

    # ==================== Stepping ====================

    def tick(self) -> bool:
        """Advance one step. Returns False once the layout has cooled."""
        s = self.settings
        self.alpha += (self.alpha_target - self.alpha) * s.alpha_decay

        if self.particles:
            self._step()
            self.sync_to_model()

        if self.on_tick:
            self.on_tick()

        if self.alpha < s.alpha_min and not self._dragging:
            self.stop()
            return False
        return True

    def _jiggle(self) -> float:
        return (self._random.random() - 0.5) * 1e-6

    def _step(self):
        particles = list(self.particles.values())
        # Every force reads positions from this snapshot
        px = {p.id: p.x for p in particles}
        py = {p.id: p.y for p in particles}

        self._apply_charge(particles, px, py)
        self._apply_springs(px, py)
        for _ in range(self.settings.collision_iterations):
            self._apply_collision(particles, px, py)
        shift_x, shift_y = self._apply_centering(particles, px, py)

        decay = 1 - self.settings.velocity_decay
        for p in particles:
            if p.pinned:
                p.x = p.fx
                p.y = p.fy
                p.vx = 0.0
                p.vy = 0.0
                continue
            p.vx *= decay
            p.vy *= decay
            p.x = px[p.id] - shift_x + p.vx
            p.y = py[p.id] - shift_y + p.vy

    def _apply_charge(self, particles: List[Particle], px, py):
        s = self.settings
        max2 = s.distance_max * s.distance_max
        min2 = s.distance_min * s.distance_min
        alpha = self.alpha
        for i, a in enumerate(particles):
            for b in particles[i + 1:]:
                dx = px[b.id] - px[a.id]
                dy = py[b.id] - py[a.id]
                if dx == 0:
                    dx = self._jiggle()
                if dy == 0:
                    dy = self._jiggle()
                l2 = dx * dx + dy * dy
                if l2 >= max2:
                    continue
                if l2 < min2:
                    l2 = math.sqrt(min2 * l2)
                k = s.charge_strength * alpha / l2
                # Negative strength pushes a away from b and b away from a
                a.vx += dx * k
                a.vy += dy * k
                b.vx -= dx * k
                b.vy -= dy * k

    def _apply_springs(self, px, py):
        degree: Dict[str, int] = {}
        for spring in self.springs:
            degree[spring.source_id] = degree.get(spring.source_id, 0) + 1
            degree[spring.target_id] = degree.get(spring.target_id, 0) + 1

        for spring in self.springs:
            source = self.particles[spring.source_id]
            target = self.particles[spring.target_id]
            dx = px[target.id] + target.vx - px[source.id] - source.vx
            dy = py[target.id] + target.vy - py[source.id] - source.vy
            if dx == 0:
                dx = self._jiggle()
            if dy == 0:
                dy = self._jiggle()
            length = math.sqrt(dx * dx + dy * dy)
            k = (length - spring.distance) / length * self.alpha * spring.strength
            dx *= k
            dy *= k
            # Lower-degree ends move more
            bias = degree[source.id] / (degree[source.id] + degree[target.id])
            target.vx -= dx * bias
            target.vy -= dy * bias
            source.vx += dx * (1 - bias)
            source.vy += dy * (1 - bias)

    def _apply_collision(self, particles: List[Particle], px, py):
        radii = {p.id: self.collision_radius(p) for p in particles}
        for i, a in enumerate(particles):
            ra = radii[a.id]
            for b in particles[i + 1:]:
                rb = radii[b.id]
                reach = ra + rb
                dx = (px[a.id] + a.vx) - (px[b.id] + b.vx)
                dy = (py[a.id] + a.vy) - (py[b.id] + b.vy)
                l2 = dx * dx + dy * dy
                if l2 >= reach * reach:
                    continue
                if dx == 0:
                    dx = self._jiggle()
                    l2 += dx * dx
                if dy == 0:
                    dy = self._jiggle()
                    l2 += dy * dy
                length = math.sqrt(l2)
                k = (reach - length) / length
                dx *= k
                dy *= k
                share = rb * rb / (ra * ra + rb * rb)
                a.vx += dx * share
                a.vy += dy * share
                b.vx -= dx * (1 - share)
                b.vy -= dy * (1 - share)

    def _apply_centering(self, particles: List[Particle], px, py) -> Tuple[float, float]:
        """Weak pull toward the centre plus the centroid shift to apply."""
        cx, cy = self.center
        pull = self.settings.center_strength * self.alpha
        for p in particles:
            p.vx += (cx - px[p.id]) * pull
            p.vy += (cy - py[p.id]) * pull

        count = len(particles)
        mean_x = sum(px.values()) / count
        mean_y = sum(py.values()) / count
        return mean_x - cx, mean_y - cy
