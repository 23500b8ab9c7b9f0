"""Shared test fixtures for the auditlens test suite."""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from auditlens.cache.display_names import DisplayNameCache
from auditlens.cache.metadata import MetadataCache
from auditlens.cache.stores.inmemory import InMemoryKeyValueStore


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "[history]\\nmax_pages_per_record = 2",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from auditlens.config import get_settings
    from auditlens.config.settings import set_toml_config

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def metadata_cache(kv_store: InMemoryKeyValueStore) -> MetadataCache:
    return MetadataCache(kv_store, "entity-metadata")


@pytest.fixture
def display_name_cache() -> DisplayNameCache:
    return DisplayNameCache()
