"""Tests for vidchat.config_loader — TOML client settings."""

from pathlib import Path

import pytest

from vidchat.config_loader import load_client_config
from vidchat.schemas.config import ClientConfig

# Path to the real config file shipped with the package
_CONFIG_DIR = Path(__file__).parent.parent / "vidchat" / "config"


@pytest.fixture(autouse=True)
def _clear_overrides(monkeypatch):
    monkeypatch.delenv("VIDCHAT_BASE_URL", raising=False)
    monkeypatch.delenv("VIDCHAT_TIMEOUT", raising=False)
    monkeypatch.delenv("VIDCHAT_ORGANIZATION_ID", raising=False)


class TestLoadClientConfig:
    def test_loads_real_config(self):
        config = load_client_config(_CONFIG_DIR / "defaults.toml")
        assert isinstance(config, ClientConfig)
        assert config.base_url == "http://localhost:3000"
        assert config.timeout == 120.0
        assert config.history_limit == 100
        assert config.token_env == "VIDCHAT_API_TOKEN"

    def test_default_path(self):
        assert load_client_config() == load_client_config(_CONFIG_DIR / "defaults.toml")

    def test_defaults_match_model(self):
        assert load_client_config() == ClientConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_client_config(tmp_path / "nope.toml")

    def test_missing_section(self, tmp_path):
        path = tmp_path / "other.toml"
        path.write_text('[server]\nport = 1\n')
        with pytest.raises(ValueError, match=r"No \[client\] section"):
            load_client_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[client]\nhistory_limit = 500\n')
        with pytest.raises(ValueError, match="Invalid"):
            load_client_config(path)

    def test_partial_section_uses_defaults(self, tmp_path):
        path = tmp_path / "partial.toml"
        path.write_text('[client]\nbase_url = "https://chat.example.com"\n')
        config = load_client_config(path)
        assert config.base_url == "https://chat.example.com"
        assert config.timeout == ClientConfig().timeout

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("VIDCHAT_BASE_URL", "https://staging.example.com")
        monkeypatch.setenv("VIDCHAT_TIMEOUT", "30")
        config = load_client_config()
        assert config.base_url == "https://staging.example.com"
        assert config.timeout == 30.0

    def test_organization_override(self, monkeypatch):
        assert load_client_config().organization_id is None
        monkeypatch.setenv("VIDCHAT_ORGANIZATION_ID", "org-7")
        assert load_client_config().organization_id == "org-7"
