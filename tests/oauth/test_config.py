"""Tests for OAuth configuration module."""

from pathlib import Path

import pytest

from xplorer.oauth.config import DEFAULT_SCOPES, XOAuthConfig, load_config
from xplorer.oauth.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove config overrides from the environment."""
    for name in ("XPLORER_CALLBACK_PORT", "XPLORER_TOKEN_FILE", "XPLORER_AUTH_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


class TestXOAuthConfig:
    """Tests for XOAuthConfig class."""

    def test_defaults(self):
        """Config defaults match the X endpoints and loopback callback."""
        config = XOAuthConfig()

        assert config.callback_host == "127.0.0.1"
        assert config.callback_port == 8477
        assert config.callback_path == "/callback"
        assert config.authorization_url == "https://twitter.com/i/oauth2/authorize"
        assert config.token_url == "https://api.x.com/2/oauth2/token"
        assert config.scopes == DEFAULT_SCOPES
        assert config.refresh_buffer_seconds == 60
        assert config.authorization_timeout == 300
        assert config.token_file.endswith("/.config/xplorertui/tokens.json")

    def test_default_scopes(self):
        assert " ".join(DEFAULT_SCOPES) == (
            "tweet.read users.read bookmark.read like.read like.write offline.access"
        )

    def test_scopes_are_not_shared(self):
        """Each config gets its own scope list."""
        first = XOAuthConfig()
        first.scopes.append("extra")
        assert "extra" not in XOAuthConfig().scopes

    def test_redirect_uri(self):
        """redirect_uri builds the loopback URL."""
        config = XOAuthConfig()
        assert config.redirect_uri() == "http://127.0.0.1:8477/callback"

    def test_redirect_uri_with_bound_port(self):
        """redirect_uri uses the actually bound port when given."""
        config = XOAuthConfig(callback_port=0)
        assert config.redirect_uri(53124) == "http://127.0.0.1:53124/callback"

    def test_ephemeral_port_allowed(self):
        assert XOAuthConfig(callback_port=0).callback_port == 0

    @pytest.mark.parametrize("port", [-1, 65536, 100000])
    def test_validates_port_range(self, port):
        """Config validates callback port is in valid range."""
        with pytest.raises(ConfigurationError, match="callback_port"):
            XOAuthConfig(callback_port=port)

    def test_validates_callback_path(self):
        with pytest.raises(ConfigurationError, match="callback_path"):
            XOAuthConfig(callback_path="callback")

    def test_validates_negative_refresh_buffer(self):
        with pytest.raises(ConfigurationError, match="refresh_buffer_seconds"):
            XOAuthConfig(refresh_buffer_seconds=-1)

    def test_validates_negative_timeout(self):
        with pytest.raises(ConfigurationError, match="authorization_timeout"):
            XOAuthConfig(authorization_timeout=-5)

    def test_validates_empty_scopes(self):
        with pytest.raises(ConfigurationError, match="scope"):
            XOAuthConfig(scopes=[])

    def test_default_config_path(self):
        path = XOAuthConfig.get_default_config_path()
        assert path == Path.home() / ".config" / "xplorertui" / "config.yaml"


class TestConfigLoading:
    """Tests for YAML and environment loading."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Missing config file yields default configuration."""
        config = XOAuthConfig.load_from_file(tmp_path / "missing.yaml")
        assert config == XOAuthConfig()

    def test_load_from_yaml(self, tmp_path):
        """Values under the oauth key are applied."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "oauth:\n"
            "  callback_port: 9000\n"
            "  callback_path: /oauth/done\n"
            "  authorization_timeout: 120\n"
            "  refresh_buffer_seconds: 30\n"
            "  scopes:\n"
            "    - tweet.read\n"
            "    - offline.access\n"
            f"  token_file: {tmp_path / 'tokens.json'}\n"
        )

        config = load_config(config_file)

        assert config.callback_port == 9000
        assert config.callback_path == "/oauth/done"
        assert config.authorization_timeout == 120
        assert config.refresh_buffer_seconds == 30
        assert config.scopes == ["tweet.read", "offline.access"]
        assert config.token_file == str(tmp_path / "tokens.json")

    def test_scopes_as_string(self, tmp_path):
        """A space-separated scope string is split."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("oauth:\n  scopes: tweet.read users.read\n")

        config = load_config(config_file)
        assert config.scopes == ["tweet.read", "users.read"]

    def test_empty_file_uses_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert load_config(config_file) == XOAuthConfig()

    def test_other_sections_ignored(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("theme: dark\n")
        assert load_config(config_file).callback_port == 8477

    def test_invalid_yaml(self, tmp_path):
        """Invalid YAML raises ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("oauth: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_file)

    def test_non_mapping_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(config_file)

    def test_non_mapping_oauth_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("oauth: 42\n")

        with pytest.raises(ConfigurationError, match="'oauth' section"):
            load_config(config_file)

    def test_invalid_value_in_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("oauth:\n  callback_port: 70000\n")

        with pytest.raises(ConfigurationError, match="callback_port"):
            load_config(config_file)

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Environment variables override file values."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("oauth:\n  callback_port: 9000\n")
        monkeypatch.setenv("XPLORER_CALLBACK_PORT", "9100")
        monkeypatch.setenv("XPLORER_TOKEN_FILE", str(tmp_path / "env-tokens.json"))
        monkeypatch.setenv("XPLORER_AUTH_TIMEOUT", "45")

        config = load_config(config_file)

        assert config.callback_port == 9100
        assert config.token_file == str(tmp_path / "env-tokens.json")
        assert config.authorization_timeout == 45.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("XPLORER_CALLBACK_PORT", "0")
        assert XOAuthConfig.from_env().callback_port == 0

    def test_token_file_expands_user(self, monkeypatch):
        monkeypatch.setenv("XPLORER_TOKEN_FILE", "~/tokens.json")
        config = XOAuthConfig.from_env()
        assert config.token_file == str(Path.home() / "tokens.json")

    def test_invalid_env_override(self, monkeypatch):
        monkeypatch.setenv("XPLORER_CALLBACK_PORT", "not-a-port")

        with pytest.raises(ConfigurationError, match="Invalid environment override"):
            XOAuthConfig.from_env()
