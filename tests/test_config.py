"""
Tests for balena_release_update.config.loader module.

Tests settings loading and merging including:
- Built-in defaults and derived URLs
- Layering (user -> project -> explicit file -> environment)
- Token sources
- Error handling
"""

from __future__ import annotations

from pathlib import Path

import pytest

from balena_release_update.config.loader import _deep_merge_dicts, load_settings
from balena_release_update.exceptions import ConfigError


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def cwd(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


class TestDefaults:
    """Tests for settings without any file or environment."""

    def test_defaults(self, home, cwd):
        """Test that the public cloud is the default."""
        settings = load_settings(env={}, home=home, cwd=cwd)

        assert settings.api_url == "https://api.balena-cloud.com"
        assert settings.delta_url == "https://delta.balena-cloud.com"
        assert settings.token is None
        assert settings.timeout == 30.0

    def test_balena_url_derives_endpoints(self, home, cwd):
        """Test that balenaUrl changes both derived URLs."""
        settings = load_settings(
            env={"BALENARC_BALENA_URL": "balena-staging.com"}, home=home, cwd=cwd
        )

        assert settings.api_url == "https://api.balena-staging.com"
        assert settings.delta_url == "https://delta.balena-staging.com"


class TestLayering:
    """Tests for settings file and environment precedence."""

    def test_project_overrides_user(self, home, cwd):
        """Test that ./.balenarc.yml wins over ~/.balenarc.yml."""
        (home / ".balenarc.yml").write_text(
            "balenaUrl: user.example.com\nrequestTimeout: 10\n"
        )
        (cwd / ".balenarc.yml").write_text("balenaUrl: project.example.com\n")

        settings = load_settings(env={}, home=home, cwd=cwd)

        assert settings.api_url == "https://api.project.example.com"
        assert settings.timeout == 10.0

    def test_explicit_file_overrides_project(self, home, cwd, tmp_path):
        """Test that --config wins over implicit files."""
        (cwd / ".balenarc.yml").write_text("apiUrl: https://project.example.com/\n")
        explicit = tmp_path / "custom.yml"
        explicit.write_text("apiUrl: https://explicit.example.com\n")

        settings = load_settings(explicit, env={}, home=home, cwd=cwd)

        assert settings.api_url == "https://explicit.example.com"

    def test_environment_overrides_files(self, home, cwd):
        """Test that environment variables win over files."""
        (cwd / ".balenarc.yml").write_text(
            "deltaUrl: https://file.example.com\napiKey: from-file\n"
        )

        settings = load_settings(
            env={
                "BALENARC_DELTA_URL": "https://env.example.com/",
                "BALENA_API_KEY": "from-env",
            },
            home=home,
            cwd=cwd,
        )

        assert settings.delta_url == "https://env.example.com"
        assert settings.token == "from-env"

    def test_empty_file_is_ignored(self, home, cwd):
        """Test that an empty settings file changes nothing."""
        (cwd / ".balenarc.yml").write_text("")

        settings = load_settings(env={}, home=home, cwd=cwd)

        assert settings.api_url == "https://api.balena-cloud.com"


class TestToken:
    """Tests for token resolution."""

    def test_token_file_fallback(self, home, cwd):
        """Test that the token saved by 'balena login' is used last."""
        (home / ".balena").mkdir()
        (home / ".balena" / "token").write_text("saved-token\n")

        settings = load_settings(env={}, home=home, cwd=cwd)

        assert settings.token == "saved-token"

    def test_env_token_beats_token_file(self, home, cwd):
        """Test that an explicit token wins over the token file."""
        (home / ".balena").mkdir()
        (home / ".balena" / "token").write_text("saved-token")

        settings = load_settings(env={"BALENA_TOKEN": "env-token"}, home=home, cwd=cwd)

        assert settings.token == "env-token"


class TestErrors:
    """Tests for invalid settings."""

    def test_invalid_yaml_raises(self, home, cwd):
        """Test that YAML syntax errors raise ConfigError."""
        (cwd / ".balenarc.yml").write_text("balenaUrl: [unclosed\n")

        with pytest.raises(ConfigError, match="Error parsing YAML"):
            load_settings(env={}, home=home, cwd=cwd)

    def test_non_mapping_raises(self, home, cwd):
        """Test that a top-level list is rejected."""
        (cwd / ".balenarc.yml").write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(env={}, home=home, cwd=cwd)

    def test_missing_explicit_file_raises(self, home, cwd, tmp_path):
        """Test that a missing --config file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml", env={}, home=home, cwd=cwd)

    @pytest.mark.parametrize("value", ["soon", "0", "-5"])
    def test_invalid_timeout_raises(self, home, cwd, value):
        """Test that the request timeout must be a positive number."""
        with pytest.raises(ConfigError, match="requestTimeout"):
            load_settings(
                env={"BALENARC_REQUEST_TIMEOUT": value}, home=home, cwd=cwd
            )


def test_deep_merge_replaces_lists_and_merges_dicts():
    """Test the merge rules shared by all layers."""
    base = {"a": {"x": 1, "y": 2}, "l": [1, 2], "s": "old"}
    overlay = {"a": {"y": 3}, "l": [9], "s": "new"}

    assert _deep_merge_dicts(base, overlay) == {
        "a": {"x": 1, "y": 3},
        "l": [9],
        "s": "new",
    }
    assert base["a"] == {"x": 1, "y": 2}
