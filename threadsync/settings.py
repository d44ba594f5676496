"""Settings resolution with profile precedence chain and env overrides."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "threadsync" / "config.toml"
DEFAULT_MAPPING_PATH = Path.home() / ".local" / "state" / "threadsync" / "mappings.toml"

_REQUIRED_SECRETS = ("slack_bot_token", "slack_app_token", "linear_api_key")


class BridgeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="THREADSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # Slack
    slack_bot_token: SecretStr | None = None
    slack_app_token: SecretStr | None = None  # socket mode
    slack_user_token: SecretStr | None = None  # search.messages rejects bot tokens

    # Linear
    linear_api_key: SecretStr | None = None
    linear_team_id: str | None = None  # team key (1SW) or UUID

    # Bridge
    mapping_path: Path = DEFAULT_MAPPING_PATH
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 3000
    webhook_path: str = "/linear-webhook"
    create_command: str = "/issue"
    list_command: str = "/issues"
    directory_page_limit: int = 10
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Profile values arrive as init kwargs; env and .env must win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/threadsync/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings(profile: str | None = None, require_credentials: bool = True) -> BridgeSettings:
    """Resolve the active profile and return a fully populated BridgeSettings.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. THREADSYNC_PROFILE env var
    3. default_profile key in ~/.config/threadsync/config.toml
    4. First profile defined in ~/.config/threadsync/config.toml
    """
    toml_config = _load_toml()

    active = (
        profile
        or os.environ.get("THREADSYNC_PROFILE")
        or toml_config.get("default_profile")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        else:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    # Env vars + .env always override profile defaults
    settings = BridgeSettings(**profile_defaults)

    if require_credentials:
        missing = [name for name in _REQUIRED_SECRETS if getattr(settings, name) is None]
        if missing:
            env_names = ", ".join(f"THREADSYNC_{name.upper()}" for name in missing)
            typer.echo(
                f"Missing credentials. Set {env_names} or the matching keys "
                f"in the [{active or 'profile'}] section of {CONFIG_PATH}"
            )
            raise typer.Exit(1)

    return settings
