# ABOUTME: Shared pytest fixtures for kindlecat tests.
# ABOUTME: Provides a fake Kindle cache directory, isolated path state, and a resolver.

from pathlib import Path

import pytest

from kindlecat.config import CatalogSettings
from kindlecat.core.paths import PathResolver
from tests.fixtures.kindle_cache import make_cache_dir

_KINDLE_ENV_VARS = (
    "KINDLE_XML_PATH",
    "KINDLE_DB_PATH",
    "KINDLE_CACHE_PATH",
    "USERPROFILE",
    "LOCALAPPDATA",
    "KINDLECAT_STATE",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Clear Kindle-related environment variables and point state into tmp_path."""
    for name in _KINDLE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    state = tmp_path / "state" / "paths.json"
    monkeypatch.setenv("KINDLECAT_STATE", str(state))
    return state


@pytest.fixture
def state_path(isolated_env: Path) -> Path:
    """Where the resolver persists its last successful resolution."""
    return isolated_env


@pytest.fixture
def kindle_cache(tmp_path: Path) -> Path:
    """A Kindle cache directory holding the sample XML and collections store."""
    return make_cache_dir(tmp_path / "Kindle" / "Cache")


@pytest.fixture
def settings(kindle_cache: Path, state_path: Path) -> CatalogSettings:
    """Settings that find kindle_cache through the cache directory override."""
    return CatalogSettings(cache_dir_override=kindle_cache, state_path=state_path)


@pytest.fixture
def resolver(settings: CatalogSettings) -> PathResolver:
    return PathResolver(settings)
