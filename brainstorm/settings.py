"""Configuration for the layout engine, renderer and editor."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from brainstorm.errors import SettingsError

logger = logging.getLogger(__name__)


# JSON types accepted for each declared field type
_ACCEPTED = {int: (int,), float: (int, float)}


def _section(cls, data: Dict[str, Any], name: str):
    """Build one section from known keys only, so older and newer files both load."""
    raw = data.get(name)
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise SettingsError(f"Section '{name}' must be an object, got {type(raw).__name__}")

    values = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        value = raw[f.name]
        if isinstance(value, bool) or not isinstance(value, _ACCEPTED[f.type]):
            raise SettingsError(
                f"{name}.{f.name} must be {f.type.__name__}, got {value!r}")
        values[f.name] = value
    return cls(**values)


@dataclass
class SimulationSettings:
    """Force layout knobs."""
    link_distance: float = 250.0
    charge_strength: float = -1000.0
    distance_max: float = 500.0
    distance_min: float = 1.0
    collision_padding: float = 20.0
    collision_iterations: int = 2
    center_strength: float = 0.02
    alpha_decay: float = 0.05
    alpha_min: float = 0.001
    velocity_decay: float = 0.5
    reheat_alpha: float = 0.3
    drag_alpha_target: float = 0.3
    default_link_strength: float = 0.3
    focused_link_strength: float = 1.0
    unfocused_link_strength: float = 0.1
    focused_distance_factor: float = 0.6
    settle_time_limit_ms: int = 1000
    tick_interval_ms: int = 16


@dataclass
class RendererSettings:
    """Scene renderer knobs."""
    edge_hit_tolerance: float = 15.0
    edge_anchor_padding: float = 4.0
    fit_padding: float = 50.0
    drag_threshold: float = 5.0
    min_scale: float = 0.1
    max_scale: float = 4.0
    zoom_step: float = 1.1


@dataclass
class EditorSettings:
    """Editing behaviour."""
    undo_depth: int = 20
    reheat_on_create: float = 0.2


@dataclass
class Settings:
    """All configuration sections."""
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    renderer: RendererSettings = field(default_factory=RendererSettings)
    editor: EditorSettings = field(default_factory=EditorSettings)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        return cls(
            simulation=_section(SimulationSettings, data, "simulation"),
            renderer=_section(RendererSettings, data, "renderer"),
            editor=_section(EditorSettings, data, "editor"),
        )

    @classmethod
    def from_json(cls, data: Optional[str]) -> "Settings":
        if not data:
            return cls()
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as exc:
            raise SettingsError(f"Invalid settings JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise SettingsError("Settings must be a JSON object")
        return cls.from_dict(parsed)


def get_config_dir() -> Path:
    """Get the per-user configuration directory."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "brainstorm"


def get_settings_path() -> Path:
    """Get the settings file path."""
    return get_config_dir() / "settings.json"


def _apply_env_overrides(settings: Settings) -> Settings:
    settle = os.environ.get("BRAINSTORM_SETTLE_MS")
    if settle:
        try:
            settings.simulation.settle_time_limit_ms = int(settle)
        except ValueError as exc:
            raise SettingsError(f"BRAINSTORM_SETTLE_MS must be an integer, got {settle!r}") from exc

    depth = os.environ.get("BRAINSTORM_UNDO_DEPTH")
    if depth:
        try:
            settings.editor.undo_depth = int(depth)
        except ValueError as exc:
            raise SettingsError(f"BRAINSTORM_UNDO_DEPTH must be an integer, got {depth!r}") from exc

    return settings


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk, falling back to defaults when the file is absent."""
    path = path or get_settings_path()
    if not path.exists():
        logger.debug("No settings file at %s, using defaults", path)
        return _apply_env_overrides(Settings())

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Cannot read settings: {exc}", path=path) from exc

    try:
        settings = Settings.from_json(raw)
    except SettingsError as exc:
        raise SettingsError(str(exc), path=path) from exc
    return _apply_env_overrides(settings)
