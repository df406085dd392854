"""
Tests for the engine configuration system.
"""
import json
import os

import yaml

from vaudio.config import (
    DEFAULT_MESSAGES,
    PRESETS,
    ConfigManager,
    EngineConfig,
    get_preset,
    list_presets,
    load_messages,
)


class TestEngineConfig:
    """Test EngineConfig dataclass."""

    def test_default_values(self):
        """Should have sensible defaults."""
        config = EngineConfig()

        assert config.initial_menu == "program/initial/menu.json"
        assert config.program_menu == "program/program-menu.json"
        assert config.game_menu == "games/game-menu.json"
        assert config.combination_window_ms == 500
        assert config.enable_combinations is True
        assert config.messages == {}

    def test_message_defaults_and_placeholders(self):
        config = EngineConfig()

        assert config.message("option_not_available") == "Option not available."
        assert config.message("scene_load_error", path="x.json") == "Error loading scene: x.json"
        assert config.message("no_such_message") == "no_such_message"

    def test_message_override(self):
        config = EngineConfig(messages={"option_not_available": "Opção indisponível."})

        assert config.message("option_not_available") == "Opção indisponível."
        assert config.message("choice_not_available") == DEFAULT_MESSAGES["choice_not_available"]

    def test_bad_placeholders_fall_back_to_template(self):
        config = EngineConfig(messages={"extra_frame": "Frame {number}"})
        assert config.message("extra_frame", key="1", description="d") == "Frame {number}"

    def test_with_messages_returns_copy(self):
        base = EngineConfig(messages={"a": "1"})
        merged = base.with_messages({"a": "2", "b": "3", "bad": 4})

        assert base.messages == {"a": "1"}
        assert merged.messages == {"a": "2", "b": "3"}

    def test_to_dict_roundtrip(self):
        """Should serialize and deserialize correctly."""
        original = EngineConfig(
            content_root="/srv/content",
            combination_window_ms=750,
            device_mappings={"keyboard": {"j": 1}},
        )

        restored = EngineConfig.from_dict(original.to_dict())

        assert restored == original

    def test_from_dict_ignores_unknown_keys(self):
        config = EngineConfig.from_dict({"combination_window_ms": 300, "colour": "blue"})
        assert config.combination_window_ms == 300

    def test_save_and_load(self, tmp_path):
        """Should persist to file correctly."""
        path = str(tmp_path / "configs" / "engine.json")
        EngineConfig(queue_maxsize=8, log_level="DEBUG").save(path)

        loaded = EngineConfig.load(path)

        assert loaded.queue_maxsize == 8
        assert loaded.log_level == "DEBUG"

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({"enable_combinations": False}), encoding="utf-8")

        assert EngineConfig.load(str(path)).enable_combinations is False

    def test_load_failures_return_none(self, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{", encoding="utf-8")
        listing = tmp_path / "list.json"
        listing.write_text("[1]", encoding="utf-8")

        assert EngineConfig.load(str(tmp_path / "missing.json")) is None
        assert EngineConfig.load(str(broken)) is None
        assert EngineConfig.load(str(listing)) is None


class TestLoadMessages:
    """Test localized messages from the content tree."""

    def test_reads_messages(self, tmp_path):
        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_text(
            json.dumps({"messages": {"option_not_available": "Indisponível", "count": 3}}),
            encoding="utf-8",
        )

        assert load_messages(str(tmp_path)) == {"option_not_available": "Indisponível"}

    def test_content_style_keys_and_placeholders(self, tmp_path):
        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_text(
            json.dumps({"messages": {
                "optionNotAvailable": "Opção não disponível.",
                "navigationNotImplemented": "Navegação não implementada: {goto}",
                "programLoadError": "Erro ao carregar programa: {path}",
            }}),
            encoding="utf-8",
        )

        config = EngineConfig().with_messages(load_messages(str(tmp_path)))

        assert config.message("option_not_available") == "Opção não disponível."
        assert config.message("navigation_not_implemented", target="x/y") == "Navegação não implementada: x/y"
        assert config.message("program_load_error", path="p.json") == "Erro ao carregar programa: p.json"

    def test_internal_name_wins_over_content_alias(self, tmp_path):
        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_text(
            json.dumps({"messages": {"optionNotAvailable": "alias", "option_not_available": "internal"}}),
            encoding="utf-8",
        )

        assert load_messages(str(tmp_path)) == {"option_not_available": "internal"}

    def test_undecodable_file(self, tmp_path):
        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_bytes(b'{"messages": {"a": "\xff\xfe"}}')
        assert load_messages(str(tmp_path)) == {}

    def test_missing_or_broken_file(self, tmp_path):
        assert load_messages(str(tmp_path)) == {}

        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_text("not json", encoding="utf-8")
        assert load_messages(str(tmp_path)) == {}

    def test_messages_must_be_mapping(self, tmp_path):
        os.makedirs(tmp_path / "program")
        (tmp_path / "program" / "config.json").write_text('{"messages": ["a"]}', encoding="utf-8")
        assert load_messages(str(tmp_path)) == {}


class TestPresets:
    """Test built-in presets."""

    def test_list_presets(self):
        assert set(list_presets()) == set(PRESETS)
        assert "relaxed" in list_presets()

    def test_get_preset_returns_copy(self):
        preset = get_preset("Relaxed")
        preset.combination_window_ms = 1

        assert PRESETS["relaxed"].combination_window_ms == 900
        assert get_preset("nope") is None

    def test_no_combinations_preset(self):
        assert get_preset("no_combinations").enable_combinations is False


class TestConfigManager:
    """Test ConfigManager."""

    def test_preset_lookup(self, tmp_path):
        manager = ConfigManager(str(tmp_path))
        assert manager.get("strict").combination_window_ms == 250
        assert manager.get("unknown") is None

    def test_save_and_get_custom(self, tmp_path):
        manager = ConfigManager(str(tmp_path / "configs"))
        path = manager.save(EngineConfig(combination_window_ms=420), "Kiosk")

        assert path.endswith("kiosk.json")
        assert ConfigManager(str(tmp_path / "configs")).get("kiosk").combination_window_ms == 420
        assert "kiosk" in manager.list_available()

    def test_custom_yaml_overrides_preset(self, tmp_path):
        (tmp_path / "strict.yaml").write_text(
            yaml.safe_dump({"combination_window_ms": 100}), encoding="utf-8"
        )
        assert ConfigManager(str(tmp_path)).get("strict").combination_window_ms == 100
