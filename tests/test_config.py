"""Tests for configuration management."""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from gitdeploy.config import (
    DEFAULT_BRANCH,
    ConfigLoader,
    EnvironmentOverrides,
    GitDeployConfig,
    GlobalConfig,
    HostConfig,
    ProfileConfig,
    get_default_config,
    load_config,
    render_template,
)
from gitdeploy.core.exceptions import ConfigError
from gitdeploy.core.logging import LogLevel
from gitdeploy.core.output import OutputFormat

NOW = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)


class TestHostConfig:
    """Tests for HostConfig."""

    def test_default_values(self):
        host = HostConfig(hostname="app1.example.com")
        assert host.user is None
        assert host.port == 22
        assert host.forward_agent is True
        assert host.pty is True
        assert host.local is False
        assert host.address == "app1.example.com"

    def test_address_with_user(self):
        assert HostConfig(hostname="app1", user="deploy").address == "deploy@app1"

    def test_key_path_expanded(self):
        host = HostConfig(hostname="app1", key_path="~/.ssh/id_deploy")
        assert host.get_key_path() == os.path.expanduser("~/.ssh/id_deploy")
        assert HostConfig(hostname="app1").get_key_path() is None

    def test_blank_hostname_rejected(self):
        with pytest.raises(ValueError):
            HostConfig(hostname="  ")


class TestProfileConfig:
    """Tests for ProfileConfig."""

    def test_default_values(self):
        profile = ProfileConfig()
        assert profile.application is None
        assert profile.repository is None
        assert profile.branch == DEFAULT_BRANCH == "master"
        assert profile.release_tag_format == "%Y%m%d%H%M%S"
        assert profile.use_sudo is True
        assert profile.hosts == []

    def test_invalid_tag_format_rejected(self):
        with pytest.raises(ValueError, match="not fixed-width"):
            ProfileConfig(release_tag_format="%B-%d")

    def test_day_first_tag_format_rejected(self):
        with pytest.raises(ValueError, match="does not sort chronologically"):
            ProfileConfig(release_tag_format="%d%m%Y%H%M%S")


class TestToSettings:
    """Tests for ProfileConfig.to_settings."""

    def test_derived_defaults(self):
        settings = ProfileConfig(application="shop", repository="git@example.com:shop.git").to_settings(now=NOW)

        assert settings.application_user == "shop"
        assert settings.application_group == "shop"
        assert settings.deploy_to == "/var/apps/shop"
        assert settings.branch == "master"
        assert settings.release_tag == "20240301123045"
        assert settings.restart_command is None
        assert settings.release_message.startswith("Deployed at 2024-03-0")

    def test_group_defaults_to_user(self):
        settings = ProfileConfig(
            application="shop",
            repository="repo",
            application_user="shopuser",
        ).to_settings(now=NOW)

        assert settings.application_user == "shopuser"
        assert settings.application_group == "shopuser"

    def test_explicit_values_kept(self):
        settings = ProfileConfig(
            application="shop",
            repository="repo",
            branch="production",
            deploy_to="/srv/shop",
            application_user="web",
            application_group="www-data",
        ).to_settings(now=NOW)

        assert settings.branch == "production"
        assert settings.deploy_to == "/srv/shop"
        assert settings.application_group == "www-data"

    def test_missing_application(self):
        with pytest.raises(ConfigError, match="name of your application"):
            ProfileConfig(repository="repo").to_settings()

    def test_missing_repository(self):
        with pytest.raises(ConfigError, match="git repository location"):
            ProfileConfig(application="shop").to_settings()

    def test_templates_rendered(self):
        settings = ProfileConfig(
            application="shop",
            repository="repo",
            release_message="{{ application }} {{ release_tag }} from {{ branch }}",
            restart_command="sudo systemctl restart {{ application }}",
        ).to_settings(now=NOW)

        assert settings.release_message == "shop 20240301123045 from master"
        assert settings.restart_command == "sudo systemctl restart shop"

    def test_undefined_template_variable(self):
        profile = ProfileConfig(application="shop", repository="repo", release_message="{{ nope }}")

        with pytest.raises(ConfigError, match="Cannot render template"):
            profile.to_settings(now=NOW)

    def test_custom_tag_format(self):
        settings = ProfileConfig(
            application="shop",
            repository="repo",
            release_tag_format="release-%Y%m%d-%H%M",
        ).to_settings(now=NOW)

        assert settings.release_tag == "release-20240301-1230"

    def test_environment_overrides(self):
        os.environ["GITDEPLOY_REPOSITORY"] = "git@example.com:other.git"
        os.environ["GITDEPLOY_BRANCH"] = "hotfix"

        settings = ProfileConfig(application="shop", repository="repo").to_settings(now=NOW)

        assert settings.repository == "git@example.com:other.git"
        assert settings.branch == "hotfix"

    def test_environment_supplies_missing_values(self):
        os.environ["GITDEPLOY_APPLICATION"] = "blog"
        os.environ["GITDEPLOY_REPOSITORY"] = "repo"

        settings = ProfileConfig().to_settings(now=NOW)

        assert settings.application == "blog"
        assert settings.deploy_to == "/var/apps/blog"

    def test_settings_are_frozen(self):
        settings = ProfileConfig(application="shop", repository="repo").to_settings(now=NOW)

        with pytest.raises(ValueError):
            settings.branch = "other"


class TestEnvironmentOverrides:
    """Tests for EnvironmentOverrides."""

    def test_empty(self):
        assert EnvironmentOverrides().as_dict() == {}

    def test_prefix(self):
        os.environ["GITDEPLOY_DEPLOY_TO"] = "/srv/app"
        assert EnvironmentOverrides().as_dict() == {"deploy_to": "/srv/app"}


class TestGlobalConfig:
    """Tests for GlobalConfig."""

    def test_default_values(self):
        config = GlobalConfig()
        assert config.output_format == OutputFormat.TABLE
        assert config.verbosity == LogLevel.INFO
        assert config.dry_run is False
        assert config.confirm_destructive is True
        assert config.max_parallel == 5
        assert config.command_timeout == 300

    def test_fields(self):
        assert set(GlobalConfig.model_fields) == {
            "output_format",
            "verbosity",
            "dry_run",
            "confirm_destructive",
            "max_parallel",
            "command_timeout",
        }

    def test_max_parallel_positive(self):
        with pytest.raises(ValueError):
            GlobalConfig(max_parallel=0)


class TestGitDeployConfig:
    """Tests for GitDeployConfig."""

    def test_default_config(self):
        config = GitDeployConfig()
        assert config.version == "1"
        assert "default" in config.profiles

    def test_get_profile_default(self):
        config = GitDeployConfig()
        assert isinstance(config.get_profile(), ProfileConfig)

    def test_get_profile_not_found(self):
        with pytest.raises(ConfigError, match="Profile 'missing' not found"):
            GitDeployConfig().get_profile("missing")

    def test_global_alias(self):
        config = GitDeployConfig(**{"global": {"max_parallel": 2}})
        assert config.global_settings.max_parallel == 2


class TestRenderTemplate:
    """Tests for render_template."""

    def test_render(self):
        assert render_template("{{ a }}-{{ b }}", {"a": 1, "b": 2}) == "1-2"

    def test_no_html_escaping(self):
        assert render_template("{{ msg }}", {"msg": "<b>&</b>"}) == "<b>&</b>"

    def test_syntax_error(self):
        with pytest.raises(ConfigError):
            render_template("{{ unclosed", {})


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_from_file(self, temp_config_file):
        config = ConfigLoader().load(config_file=temp_config_file)

        profile = config.get_profile()
        assert profile.application == "shop"
        assert profile.branch == "main"
        assert [h.address for h in profile.hosts] == ["deploy@web1", "deploy@web2"]

    def test_load_nonexistent_file(self):
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader().load(config_file="/nonexistent/config.yaml")

    def test_load_unknown_profile(self, temp_config_file):
        with pytest.raises(ConfigError, match="Profile 'nope' not found"):
            ConfigLoader().load(config_file=temp_config_file, profile="nope")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("profiles: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            ConfigLoader().load(config_file=path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="Expected a mapping"):
            ConfigLoader().load(config_file=path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"profiles": {"default": {"release_tag_format": "%b"}}}))

        with pytest.raises(ConfigError, match="Invalid configuration"):
            ConfigLoader().load(config_file=path)

    def test_unordered_tag_format_in_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"profiles": {"default": {"release_tag_format": "%H%M%S-%Y%m%d"}}}))

        with pytest.raises(ConfigError, match="does not sort chronologically"):
            ConfigLoader().load(config_file=path)

    def test_user_config_merged_with_explicit(self, tmp_path):
        user_dir = Path(os.environ["GITDEPLOY_CONFIG_DIR"])
        (user_dir / "config.yaml").write_text(
            yaml.dump({"global": {"max_parallel": 3}, "profiles": {"default": {"application": "shop", "branch": "dev"}}})
        )
        explicit = tmp_path / "deploy.yaml"
        explicit.write_text(yaml.dump({"profiles": {"default": {"branch": "main", "repository": "repo"}}}))

        config = ConfigLoader().load(config_file=explicit)

        profile = config.get_profile()
        assert config.global_settings.max_parallel == 3
        assert profile.application == "shop"
        assert profile.repository == "repo"
        assert profile.branch == "main"

    def test_project_config_found(self, tmp_path, monkeypatch):
        (tmp_path / "gitdeploy.yaml").write_text(yaml.dump({"profiles": {"staging": {"application": "shop"}}}))
        nested = tmp_path / "app" / "src"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        config = ConfigLoader().load(profile="staging")

        assert config.get_profile("staging").application == "shop"

    def test_deep_merge(self):
        loader = ConfigLoader()
        merged = loader._deep_merge(
            {"a": {"b": 1, "c": 2}, "d": 1},
            {"a": {"c": 3}, "e": 4},
        )
        assert merged == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}


class TestLoadConfig:
    """Tests for module-level helpers."""

    def test_load_config(self, temp_config_file):
        config = load_config(temp_config_file)
        assert config.get_profile().restart_command == "sudo systemctl restart {{ application }}"

    def test_get_default_config(self):
        config = get_default_config()
        assert config.profiles["default"].application is None
