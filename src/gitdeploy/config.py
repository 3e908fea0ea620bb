"""Configuration management for gitdeploy using Pydantic."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitdeploy.core.exceptions import ConfigError
from gitdeploy.core.output import OutputFormat
from gitdeploy.core.logging import LogLevel
from gitdeploy.release.tags import DEFAULT_TAG_FORMAT, release_tag_pattern

DEFAULT_BRANCH = "master"
DEFAULT_RELEASE_MESSAGE = "Deployed at {{ now }}"

_templates = Environment(loader=BaseLoader(), undefined=StrictUndefined, autoescape=False)


class HostConfig(BaseModel):
    """A target host."""

    hostname: str
    user: str | None = None
    port: int = 22
    key_path: str | None = None
    # forward the deploying user's key so the host can reach the git server
    forward_agent: bool = True
    # git may prompt for a password when no key is usable
    pty: bool = True
    local: bool = False
    connect_timeout: int = 20

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("hostname must not be empty")
        return v.strip()

    @property
    def address(self) -> str:
        """Host address as shown to operators."""
        if self.user:
            return f"{self.user}@{self.hostname}"
        return self.hostname

    def get_key_path(self) -> str | None:
        """Get the private key path with the user directory expanded."""
        if self.key_path:
            return os.path.expanduser(self.key_path)
        return None


class ReleaseSettings(BaseModel):
    """Resolved, read-only settings for one invocation.

    Built once by :meth:`ProfileConfig.to_settings` and passed explicitly to
    every deployment step.
    """

    model_config = ConfigDict(frozen=True)

    application: str
    application_user: str
    application_group: str
    repository: str
    branch: str
    deploy_to: str
    release_tag: str
    release_tag_format: str
    release_message: str
    restart_command: str | None = None
    use_sudo: bool = True


class EnvironmentOverrides(BaseSettings):
    """Release settings overridden from GITDEPLOY_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="GITDEPLOY_", extra="ignore")

    application: str | None = None
    repository: str | None = None
    branch: str | None = None
    deploy_to: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class ProfileConfig(BaseModel):
    """Profile configuration for one deployment stage."""

    application: str | None = None
    repository: str | None = None
    branch: str = DEFAULT_BRANCH
    deploy_to: str | None = None
    application_user: str | None = None
    application_group: str | None = None
    release_tag_format: str = DEFAULT_TAG_FORMAT
    release_message: str = DEFAULT_RELEASE_MESSAGE
    restart_command: str | None = None
    use_sudo: bool = True
    hosts: list[HostConfig] = Field(default_factory=list)

    @field_validator("release_tag_format")
    @classmethod
    def validate_release_tag_format(cls, v: str) -> str:
        try:
            release_tag_pattern(v)
        except ConfigError as e:
            raise ValueError(e.message)
        return v

    def to_settings(self, now: datetime | None = None) -> ReleaseSettings:
        """Resolve defaults and templates into immutable release settings.

        Args:
            now: Timestamp used for the release tag (defaults to current UTC time)

        Returns:
            Resolved ReleaseSettings

        Raises:
            ConfigError: If the application name or repository is missing,
                or a template cannot be rendered
        """
        values = {**self.model_dump(exclude={"hosts"}), **EnvironmentOverrides().as_dict()}

        application = values.get("application")
        if not application:
            raise ConfigError(
                "You must set the name of your application, e.g.: application: tomafro.net"
            )
        repository = values.get("repository")
        if not repository:
            raise ConfigError(
                "You must set the git repository location, "
                "e.g.: repository: git@github.com:tomafro/tomafro.net.git"
            )

        now = now or datetime.now(timezone.utc)
        application_user = values.get("application_user") or application
        variables: dict[str, Any] = {
            "application": application,
            "application_user": application_user,
            "application_group": values.get("application_group") or application_user,
            "repository": repository,
            "branch": values["branch"],
            "deploy_to": values.get("deploy_to") or f"/var/apps/{application}",
            "release_tag": now.astimezone(timezone.utc).strftime(values["release_tag_format"]),
            "now": now.astimezone().strftime("%Y-%m-%d %H:%M:%S %z"),
        }

        restart_command = values.get("restart_command")
        return ReleaseSettings(
            application=application,
            application_user=variables["application_user"],
            application_group=variables["application_group"],
            repository=repository,
            branch=variables["branch"],
            deploy_to=variables["deploy_to"],
            release_tag=variables["release_tag"],
            release_tag_format=values["release_tag_format"],
            release_message=render_template(values["release_message"], variables),
            restart_command=render_template(restart_command, variables) if restart_command else None,
            use_sudo=values["use_sudo"],
        )


class GlobalConfig(BaseModel):
    """Global settings."""

    output_format: OutputFormat = OutputFormat.TABLE
    verbosity: LogLevel = LogLevel.INFO
    dry_run: bool = False
    confirm_destructive: bool = True
    max_parallel: int = Field(default=5, ge=1)
    command_timeout: int = Field(default=300, ge=1)


class GitDeployConfig(BaseModel):
    """Main configuration model."""

    model_config = {"populate_by_name": True}

    version: str = "1"
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    profiles: dict[str, ProfileConfig] = Field(default_factory=lambda: {"default": ProfileConfig()})

    def get_profile(self, name: str | None = None) -> ProfileConfig:
        """Get a profile by name, defaulting to 'default'."""
        profile_name = name or "default"
        if profile_name not in self.profiles:
            raise ConfigError(f"Profile '{profile_name}' not found")
        return self.profiles[profile_name]


def render_template(template: str, variables: dict[str, Any]) -> str:
    """Render a Jinja2 template string.

    Raises:
        ConfigError: If the template is invalid or uses an undefined variable
    """
    try:
        return _templates.from_string(template).render(**variables)
    except TemplateError as e:
        raise ConfigError(f"Cannot render template '{template}': {e}")


class ConfigLoader:
    """Loads and merges configuration from multiple sources."""

    CONFIG_FILENAMES = ["gitdeploy.yaml", "gitdeploy.yml", ".gitdeploy.yaml", ".gitdeploy.yml"]

    def __init__(self):
        self._config: GitDeployConfig | None = None

    def load(
        self,
        config_file: str | Path | None = None,
        profile: str | None = None,
    ) -> GitDeployConfig:
        """Load configuration from files.

        Priority (highest to lowest):
        1. Explicitly specified config file
        2. Project config (./gitdeploy.yaml)
        3. User config (~/.gitdeploy/config.yaml)

        Args:
            config_file: Optional explicit config file path
            profile: Profile name to use

        Returns:
            Merged configuration
        """
        configs: list[dict[str, Any]] = []

        user_config_path = self._user_config_dir() / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        merged = self._merge_configs(configs)

        try:
            self._config = GitDeployConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

        if profile:
            self._config.get_profile(profile)
        return self._config

    def _user_config_dir(self) -> Path:
        return Path(os.environ.get("GITDEPLOY_CONFIG_DIR", "~/.gitdeploy")).expanduser()

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        """Load a YAML config file."""
        try:
            with open(path) as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")
        if not isinstance(content, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}")
        return content

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        """Deep merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


# Global config loader instance
_config_loader = ConfigLoader()


def load_config(
    config_file: str | Path | None = None,
    profile: str | None = None,
) -> GitDeployConfig:
    """Load gitdeploy configuration.

    Args:
        config_file: Optional explicit config file path
        profile: Profile name to use

    Returns:
        Loaded configuration
    """
    return _config_loader.load(config_file, profile)


def get_default_config() -> GitDeployConfig:
    """Get default configuration without loading from files."""
    return GitDeployConfig()
