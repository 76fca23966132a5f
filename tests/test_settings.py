"""Tests for configuration loading."""

import json

import pytest

from brainstorm.errors import SettingsError
from brainstorm.settings import Settings, get_settings_path, load_settings


class TestSettingsJson:
    def test_defaults(self):
        settings = Settings()
        assert settings.simulation.link_distance == 250
        assert settings.simulation.settle_time_limit_ms == 1000
        assert settings.renderer.edge_hit_tolerance == 15
        assert settings.editor.undo_depth == 20

    def test_empty_input_gives_defaults(self):
        assert Settings.from_json(None) == Settings()
        assert Settings.from_json("") == Settings()

    def test_unknown_keys_are_ignored(self):
        raw = json.dumps({
            "simulation": {"link_distance": 120, "warp_speed": 9},
            "toolbar": {"visible": True},
        })
        settings = Settings.from_json(raw)
        assert settings.simulation.link_distance == 120
        assert settings.renderer == Settings().renderer

    def test_to_json_round_trip(self):
        settings = Settings()
        settings.editor.undo_depth = 5
        assert Settings.from_json(settings.to_json()) == settings

    def test_invalid_json(self):
        with pytest.raises(SettingsError):
            Settings.from_json("{not json")

    def test_non_object(self):
        with pytest.raises(SettingsError):
            Settings.from_json("[1, 2]")

    def test_section_must_be_object(self):
        with pytest.raises(SettingsError, match="simulation"):
            Settings.from_json(json.dumps({"simulation": [1, 2]}))

    @pytest.mark.parametrize("section, key, value", [
        ("simulation", "settle_time_limit_ms", "x"),
        ("simulation", "tick_interval_ms", 16.5),
        ("renderer", "zoom_step", None),
        ("editor", "undo_depth", True),
    ])
    def test_wrong_value_type(self, section, key, value):
        with pytest.raises(SettingsError, match=key):
            Settings.from_json(json.dumps({section: {key: value}}))

    def test_integers_accepted_for_floats(self):
        settings = Settings.from_json(json.dumps({"renderer": {"zoom_step": 2}}))
        assert settings.renderer.zoom_step == 2

    def test_null_section_gives_defaults(self):
        assert Settings.from_json(json.dumps({"editor": None})) == Settings()


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BRAINSTORM_SETTLE_MS", raising=False)
        monkeypatch.delenv("BRAINSTORM_UNDO_DEPTH", raising=False)
        assert load_settings(tmp_path / "absent.json") == Settings()

    def test_reads_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BRAINSTORM_SETTLE_MS", raising=False)
        monkeypatch.delenv("BRAINSTORM_UNDO_DEPTH", raising=False)
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"editor": {"undo_depth": 7}}), encoding="utf-8")
        assert load_settings(path).editor.undo_depth == 7

    def test_invalid_file_reports_path(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("oops", encoding="utf-8")
        with pytest.raises(SettingsError) as info:
            load_settings(path)
        assert info.value.path == path

    def test_malformed_section_reports_path(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"simulation": [1, 2]}), encoding="utf-8")
        with pytest.raises(SettingsError) as info:
            load_settings(path)
        assert info.value.path == path

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BRAINSTORM_SETTLE_MS", "250")
        monkeypatch.setenv("BRAINSTORM_UNDO_DEPTH", "3")
        settings = load_settings(tmp_path / "absent.json")
        assert settings.simulation.settle_time_limit_ms == 250
        assert settings.editor.undo_depth == 3

    def test_bad_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BRAINSTORM_UNDO_DEPTH", "lots")
        with pytest.raises(SettingsError):
            load_settings(tmp_path / "absent.json")

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_settings_path() == tmp_path / "brainstorm" / "settings.json"
