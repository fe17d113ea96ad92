import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from ngx_resizer.lib.fetcher import DEFAULT_USER_AGENT, MAX_RANGE
from ngx_resizer.lib.sizes import SizeDefinition, SizeRegistry, build_size_map

# Load .env file early so env vars are available for YAML interpolation
load_dotenv()

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

ENV_VAR = "NGX_RESIZER_ENV"

_config_path_override: Path | None = None


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def set_config_path(path: Path | None) -> None:
    """Use ``path`` instead of the environment-based config file."""
    global _config_path_override
    _config_path_override = path


def get_config_path() -> Path:
    """Resolve the YAML config file: ``app.{env}.yaml`` or ``app.yaml``."""
    if _config_path_override is not None:
        return _config_path_override

    env = os.environ.get(ENV_VAR, "").strip()
    if env and env != "production":
        return Path.cwd() / f"app.{env}.yaml"
    return Path.cwd() / "app.yaml"


def load_app_config() -> dict:
    """Load and parse the YAML config with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"{config_path.name} not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class UploadsConfig(BaseModel):
    """Where uploads are served from and stored."""

    base_url: str = "http://localhost:8000/wp-content/uploads"
    base_dir: Path | None = None


class SizeConfig(BaseModel):
    """A named size's box and crop policy."""

    width: int | None = None
    height: int | None = None
    crop: bool | list[str] = False

    def to_definition(self) -> SizeDefinition:
        return SizeDefinition.from_value(self.model_dump())


class SizesConfig(BaseModel):
    """Platform sizes plus site-registered extras."""

    thumbnail: SizeConfig = SizeConfig(width=150, height=150, crop=True)
    medium: SizeConfig = SizeConfig(width=300, height=300)
    large: SizeConfig = SizeConfig(width=1024, height=1024)
    additional: dict[str, SizeConfig] = {}


class HttpConfig(BaseModel):
    """Remote header fetching."""

    timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    max_range: int = MAX_RANGE


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite+aiosqlite:///./resizer.db"
    echo: bool = False


class LogfireConfig(BaseModel):
    """Pydantic Logfire tracing."""

    enabled: bool = False
    service_name: str = "ngx-resizer"
    environment: str | None = None
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NGX_RESIZER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # nginx secure_link_md5 expression; empty disables signing
    secure_link: str = ""
    disable_intermediate_sizes: bool = True
    enable_external_thumbnail: bool = False

    # Theme content width in pixels
    content_width: int | None = None

    # Scheme of the current request; None keeps URLs as they are
    scheme: Literal["http", "https"] | None = None

    uploads: UploadsConfig = UploadsConfig()
    sizes: SizesConfig = SizesConfig()
    http: HttpConfig = HttpConfig()
    db: DatabaseConfig = DatabaseConfig()
    logfire: LogfireConfig = LogfireConfig()


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment, .env and the YAML config."""
    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {
        key: value for key, value in app_config.items() if key in Settings.model_fields
    }
    if not updates:
        return base_settings

    return Settings.model_validate({**base_settings.model_dump(), **updates})


def clear_settings_cache() -> None:
    """Drop cached settings so the next call re-reads configuration."""
    get_settings.cache_clear()


def registry_from_settings(settings: Settings) -> SizeRegistry:
    """A size registry that reads the configured sizes on first use."""

    def provider() -> dict[str, SizeDefinition]:
        sizes = settings.sizes
        return build_size_map(
            thumbnail=sizes.thumbnail.to_definition(),
            medium=sizes.medium.to_definition(),
            large=sizes.large.to_definition(),
            additional={
                name: size.to_definition() for name, size in sizes.additional.items()
            },
        )

    return SizeRegistry(provider)
