"""Settings resolution with named profile support."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from boardmd.dates import DateFormat

CONFIG_PATH = Path.home() / ".config" / "boardmd" / "config.toml"


class BoardmdSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOARDMD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # Trello
    trello_api_key: SecretStr | None = None
    trello_token: SecretStr | None = None

    # Editing
    board_id: str | None = None  # the "current" board
    date_format: DateFormat = DateFormat.ISO
    editor: str | None = None  # falls back to $VISUAL / $EDITOR

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # profile values arrive as init kwargs and rank below the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/boardmd/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def resolve_profile(profile: str | None = None) -> str | None:
    """Name of the active profile, or None when the config file defines none.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. BOARDMD_DEFAULT_PROFILE env var
    3. default_profile key in ~/.config/boardmd/config.toml
    4. First profile defined in ~/.config/boardmd/config.toml
    """
    toml_config = _load_toml()
    return (
        profile
        or os.environ.get("BOARDMD_DEFAULT_PROFILE")
        or toml_config.get("default_profile")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )


def get_settings(profile: str | None = None, require_credentials: bool = True) -> BoardmdSettings:
    """Resolve the active profile and return a fully populated BoardmdSettings.

    The profile block supplies defaults; BOARDMD_* env vars and .env always
    override it.
    """
    toml_config = _load_toml()
    active = resolve_profile(profile)

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        else:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    settings = BoardmdSettings(**profile_defaults)

    if require_credentials and not (settings.trello_api_key and settings.trello_token):
        typer.echo(
            "Missing Trello credentials. Set BOARDMD_TRELLO_API_KEY and BOARDMD_TRELLO_TOKEN, "
            f"add trello_api_key / trello_token to the [{active or 'profile'}] section of {CONFIG_PATH}, "
            "or run: boardmd init"
        )
        raise typer.Exit(1)

    return settings


def _editable_config() -> tomlkit.TOMLDocument:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    return tomlkit.load(CONFIG_PATH.open()) if CONFIG_PATH.exists() else tomlkit.document()


def _write_config(doc: tomlkit.TOMLDocument) -> None:
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    _load_toml.cache_clear()


def save_profile_value(profile: str, key: str, value: Any) -> None:
    """Set one key in a profile table, keeping the rest of the file (comments included) intact."""
    doc = _editable_config()
    if profile not in doc:
        doc.add(profile, tomlkit.table())
    doc[profile][key] = value
    _write_config(doc)


def save_profile(profile: str, values: dict[str, Any], make_default: bool = False) -> None:
    """Replace a whole profile table, optionally making it the default."""
    doc = _editable_config()
    doc[profile] = values
    if make_default:
        doc["default_profile"] = profile
    _write_config(doc)


def set_default_profile(profile: str) -> None:
    """Point default_profile at an existing profile.

    With no config file yet any name is accepted, so the default can be set
    before the profile is written.
    """
    existed = CONFIG_PATH.exists()
    doc = _editable_config()
    profiles = _list_profiles(doc)
    if existed and profile not in profiles:
        typer.echo(f"Profile '{profile}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
        raise typer.Exit(1)
    doc["default_profile"] = profile
    _write_config(doc)
