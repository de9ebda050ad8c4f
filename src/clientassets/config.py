"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (CLIENTASSETS__BUNDLE__ENABLED=true)
  3. clientassets.yaml      (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Exposing ourselves as MSIE 11 gets fonts served as WOFF, the widest supported format
_IE11_USER_AGENT = "Mozilla/5.0 (Windows NT 6.1; WOW64; Trident/7.0; rv:11.0) like Gecko"


def _find_config_file() -> str | None:
    """Return the path of the first clientassets.yaml found, or None."""
    candidates = [
        Path("clientassets.yaml"),
        Path(platformdirs.user_config_dir("clientassets")) / "clientassets.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class SiteSettings(BaseModel):
    # Filesystem root that local asset URLs and relative paths resolve against
    base_path: str = "."
    # Public URL of base_path; URLs under it are considered local
    base_url: str = ""


class BundleSettings(BaseModel):
    enabled: bool = False
    # Relative paths resolve against site.base_path. The directory must live
    # under base_path: bundle URLs are derived from its place there.
    cache_dir: str = "assets-cache"


class RenderSettings(BaseModel):
    order: Literal["ascending", "descending"] = "ascending"
    default_priority: int = 100
    separator: str = "\n"


class FontSettings(BaseModel):
    css_url: str = "https://fonts.googleapis.com/css"
    timeout_seconds: float = 10.0
    max_age_days: int = 7
    user_agent: str = _IE11_USER_AGENT
    priority: int = 0


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: CLIENTASSETS__FONTS__TIMEOUT_SECONDS=5
        env_prefix="CLIENTASSETS__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    site: SiteSettings = SiteSettings()
    bundle: BundleSettings = BundleSettings()
    render: RenderSettings = RenderSettings()
    fonts: FontSettings = FontSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )

    def cache_path(self) -> Path:
        """Bundle cache directory, resolved against ``site.base_path`` when relative."""
        cache_dir = Path(self.bundle.cache_dir).expanduser()
        if cache_dir.is_absolute():
            return cache_dir
        return Path(self.site.base_path) / cache_dir
