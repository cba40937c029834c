"""Tests for the YAML config store."""

import pytest
import yaml

from bguard.config import (
    ALLOWED_TOKENS_KEY,
    CONFIG_ENV_VAR,
    ConfigStore,
    default_config_path,
    load_config,
    parse_config,
    translate_color_codes,
)
from bguard.errors import ConfigError
from bguard.gatekeeper import Gatekeeper
from tests.conftest import make_handshake, token_property


class TestColorCodes:
    def test_translates_ampersand_codes(self):
        assert translate_color_codes("&cUnable &lto&r go") == "§cUnable §lto§r go"

    def test_upper_case_codes_are_lowered(self):
        assert translate_color_codes("&CRed") == "§cRed"

    def test_non_codes_are_left_alone(self):
        assert translate_color_codes("Tom & Jerry &z") == "Tom & Jerry &z"

    def test_custom_alt_char(self):
        assert translate_color_codes("$aGreen", alt_char="$") == "§aGreen"


class TestParseConfig:
    def test_defaults(self):
        config = parse_config(None)

        assert config.allowed_tokens == []
        assert config.messages.no_data.startswith("§c")
        assert config.messages.no_properties == "§cUnable to authenticate."

    def test_values(self):
        config = parse_config(
            {
                "no-data-kick-message": "&4no data",
                "no-properties-kick-message": "no props",
                "invalid-token-kick-message": "bad token",
                "allowed-tokens": ["a", "b"],
            }
        )

        assert config.messages.no_data == "§4no data"
        assert config.messages.no_properties == "no props"
        assert config.messages.invalid_token == "bad token"
        assert config.allowed_tokens == ["a", "b"]

    @pytest.mark.parametrize(
        "data",
        [
            ["not", "a", "mapping"],
            {"allowed-tokens": "single"},
            {"allowed-tokens": [1]},
            {"allowed-tokens": [""]},
            {"no-data-kick-message": 5},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ConfigError):
            parse_config(data)


class TestConfigStore:
    def test_writes_default_file(self, tmp_path):
        path = tmp_path / "config.yml"
        config = ConfigStore(path).load()

        assert path.exists()
        on_disk = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert on_disk[ALLOWED_TOKENS_KEY] == []
        assert on_disk["no-data-kick-message"].startswith("&c")
        assert config.allowed_tokens == []

    def test_does_not_overwrite_existing(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("allowed-tokens:\n  - abc\n", encoding="utf-8")

        assert ConfigStore(path).save_default_config() is False
        assert load_config(path).allowed_tokens == ["abc"]

    def test_save_allowed_tokens_keeps_other_keys(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "no-data-kick-message: '&ccustom'\nallowed-tokens: []\nunrelated: 3\n",
            encoding="utf-8",
        )
        ConfigStore(path).save_allowed_tokens(["T"])

        on_disk = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert on_disk == {"no-data-kick-message": "&ccustom", "allowed-tokens": ["T"], "unrelated": 3}
        assert list(tmp_path.iterdir()) == [path]

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("allowed-tokens: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            ConfigStore(path).load()

    def test_default_path_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "guard.yml"))
        assert default_config_path() == tmp_path / "guard.yml"
        assert ConfigStore().path == tmp_path / "guard.yml"

    def test_gatekeeper_learns_into_file(self, tmp_path):
        """End to end: empty config, first connection, token lands on disk."""
        path = tmp_path / "config.yml"
        gatekeeper = Gatekeeper.from_store(ConfigStore(path))

        decision = gatekeeper.evaluate_handshake(make_handshake(properties=[token_property("learned")]))

        assert decision.accepted
        assert load_config(path).allowed_tokens == ["learned"]

        reloaded = Gatekeeper.from_store(ConfigStore(path))
        assert reloaded.tokens.snapshot() == ["learned"]
        assert not reloaded.evaluate_handshake(make_handshake(properties=[token_property("other")])).accepted
