"""Shared pytest fixtures."""

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

import ngx_resizer.config as config_mod
from ngx_resizer.config import clear_settings_cache
from ngx_resizer.lib.hooks import hooks
from ngx_resizer.lib.secure_link import ResizedURLBuilder
from ngx_resizer.lib.sizes import SizeRegistry

UPLOADS = "http://example.com/wp-content/uploads"


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def clean_config():
    """Reset the config path override and cached settings around a test."""
    config_mod._config_path_override = None
    clear_settings_cache()
    yield
    config_mod._config_path_override = None
    clear_settings_cache()


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = hooks._filters.copy()
    original_actions = hooks._actions.copy()
    yield
    hooks._filters = original_filters
    hooks._actions = original_actions


def registered_filters(registry):
    """Names of the hooks that have at least one filter."""
    return {name for name, handlers in registry._filters.items() if handlers}


@pytest.fixture
def size_registry():
    """The default platform sizes."""
    return SizeRegistry.from_mapping(
        {
            "thumb": {"width": 150, "height": 150, "crop": True},
            "thumbnail": {"width": 150, "height": 150, "crop": True},
            "medium": {"width": 300, "height": 300, "crop": False},
            "large": {"width": 1024, "height": 1024, "crop": False},
        }
    )


@pytest.fixture
def builder():
    return ResizedURLBuilder(UPLOADS)


@pytest.fixture
def image_bytes():
    """Encode a blank image with Pillow: ``image_bytes("PNG", 640, 480)``."""
    from PIL import Image

    def _make(fmt: str, width: int, height: int, **save_kwargs) -> bytes:
        mode = "P" if fmt == "GIF" else "RGB"
        buf = io.BytesIO()
        Image.new(mode, (width, height)).save(buf, fmt, **save_kwargs)
        return buf.getvalue()

    return _make


def mock_db_session() -> AsyncMock:
    """Create a mock async database session with a fluent execute interface."""
    session = AsyncMock()
    # Make session.add a regular MagicMock so it doesn't produce coroutine warnings
    session.add = MagicMock()
    return session


def scalar_result(value) -> MagicMock:
    """A mock execute() result whose scalar_one_or_none returns ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result
