# ABOUTME: Unit tests for locating the Kindle cache files.
# ABOUTME: Covers resolution priority, the persisted 24h resolution, manual paths, and failures.

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from kindlecat.config import CatalogSettings
from kindlecat.core.paths import (
    SOURCE_AUTO,
    SOURCE_CACHED,
    SOURCE_EXPLICIT,
    SOURCE_MANUAL,
    PathConfiguration,
    PathResolver,
    build_candidates,
    check_cache_directory,
    normalize_manual_path,
)
from kindlecat.errors import PathNotFoundError, PathSecurityError
from tests.fixtures.kindle_cache import DB_RELATIVE, XML_NAME, make_cache_dir

START = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """A settable UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestCheckCacheDirectory:
    """Tests for check_cache_directory."""

    def test_valid_directory(self, kindle_cache: Path) -> None:
        paths = check_cache_directory(kindle_cache)
        assert paths.xml_path == kindle_cache / XML_NAME
        assert paths.db_path == kindle_cache / DB_RELATIVE
        assert paths.base_dir == kindle_cache

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(PathNotFoundError):
            check_cache_directory(tmp_path / "nope")

    def test_missing_db(self, kindle_cache: Path) -> None:
        (kindle_cache / DB_RELATIVE).unlink()
        with pytest.raises(PathNotFoundError):
            check_cache_directory(kindle_cache)

    def test_empty_xml(self, kindle_cache: Path) -> None:
        (kindle_cache / XML_NAME).write_bytes(b"")
        with pytest.raises(PathNotFoundError):
            check_cache_directory(kindle_cache)


class TestBuildCandidates:
    """Tests for candidate directory ordering."""

    def test_order_is_override_then_profile_then_local_app_data(self, tmp_path: Path) -> None:
        settings = CatalogSettings(
            cache_dir_override=tmp_path / "override",
            user_profile=tmp_path / "profile",
            local_app_data=tmp_path / "local",
        )
        candidates = build_candidates(settings)
        assert [c.origin for c in candidates] == ["override", "user_profile", "local_app_data"]
        assert candidates[1].base_dir == tmp_path / "profile/AppData/Local/Amazon/Kindle/Cache"
        assert candidates[2].base_dir == tmp_path / "local/Amazon/Kindle/Cache"

    def test_duplicates_are_removed(self, tmp_path: Path) -> None:
        settings = CatalogSettings(
            user_profile=tmp_path / "profile",
            local_app_data=tmp_path / "profile" / "AppData" / "Local",
        )
        assert len(build_candidates(settings)) == 1

    def test_no_settings_no_candidates(self) -> None:
        assert build_candidates(CatalogSettings()) == []


class TestNormalizeManualPath:
    """Tests for manual path sanitization."""

    @pytest.mark.parametrize(
        "raw",
        ["../Kindle", "C:\\Users\\..\\Admin", "/tmp/a/../b", "bad<name", 'a"b', "a|b", "a?b", "a*b"],
    )
    def test_rejects_unsafe_input(self, raw: str) -> None:
        with pytest.raises(PathSecurityError):
            normalize_manual_path(raw)

    def test_rejects_colon_after_drive_prefix(self) -> None:
        with pytest.raises(PathSecurityError):
            normalize_manual_path("C:\\Kindle:Cache")

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_rejects_empty_input(self, raw: str) -> None:
        with pytest.raises(PathSecurityError):
            normalize_manual_path(raw)

    def test_returns_absolute_path(self, tmp_path: Path) -> None:
        assert normalize_manual_path(f"  {tmp_path}  ") == tmp_path

    def test_allows_drive_prefix(self) -> None:
        assert normalize_manual_path("C:\\Kindle").is_absolute()

    def test_allows_dots_inside_names(self, tmp_path: Path) -> None:
        assert normalize_manual_path(str(tmp_path / "my..folder")).name == "my..folder"


class TestPathResolverPriority:
    """Tests for the explicit > cached > auto ordering."""

    def test_auto_detection_through_override(self, resolver: PathResolver, kindle_cache: Path) -> None:
        resolution = resolver.resolve()
        assert resolution.success
        assert resolution.source == SOURCE_AUTO
        assert resolution.paths is not None
        assert resolution.paths.base_dir == kindle_cache

    def test_auto_detection_persists_configuration(
        self, resolver: PathResolver, kindle_cache: Path, state_path: Path
    ) -> None:
        resolver.resolve()
        data = json.loads(state_path.read_text(encoding="utf-8"))
        assert data["kindle_cache_path"] == str(kindle_cache)
        assert data["source"] == SOURCE_AUTO
        assert datetime.fromisoformat(data["last_validated"])

    def test_second_resolution_uses_cache(self, resolver: PathResolver) -> None:
        resolver.resolve()
        assert resolver.resolve().source == SOURCE_CACHED

    def test_force_refresh_skips_cache(self, resolver: PathResolver) -> None:
        resolver.resolve()
        assert resolver.resolve(force_refresh=True).source == SOURCE_AUTO

    def test_explicit_overrides_win(
        self, settings: CatalogSettings, kindle_cache: Path, state_path: Path
    ) -> None:
        explicit = CatalogSettings(
            xml_override=kindle_cache / XML_NAME,
            db_override=kindle_cache / DB_RELATIVE,
            cache_dir_override=settings.cache_dir_override,
            state_path=state_path,
        )
        PathResolver(settings).resolve()
        resolution = PathResolver(explicit).resolve()
        assert resolution.source == SOURCE_EXPLICIT
        assert resolution.paths is not None
        assert resolution.paths.base_dir == kindle_cache

    def test_explicit_resolution_is_not_persisted(
        self, kindle_cache: Path, state_path: Path
    ) -> None:
        explicit = CatalogSettings(
            xml_override=kindle_cache / XML_NAME,
            db_override=kindle_cache / DB_RELATIVE,
            state_path=state_path,
        )
        PathResolver(explicit).resolve()
        assert not state_path.exists()

    def test_invalid_explicit_overrides_fall_through(
        self, kindle_cache: Path, state_path: Path, tmp_path: Path
    ) -> None:
        settings = CatalogSettings(
            xml_override=tmp_path / "missing.xml",
            db_override=kindle_cache / DB_RELATIVE,
            cache_dir_override=kindle_cache,
            state_path=state_path,
        )
        assert PathResolver(settings).resolve().source == SOURCE_AUTO

    def test_user_profile_candidate(self, tmp_path: Path, state_path: Path) -> None:
        profile = tmp_path / "profile"
        cache = make_cache_dir(profile / "AppData" / "Local" / "Amazon" / "Kindle" / "Cache")
        resolver = PathResolver(CatalogSettings(user_profile=profile, state_path=state_path))
        resolution = resolver.resolve()
        assert resolution.paths is not None
        assert resolution.paths.base_dir == cache

    def test_local_app_data_candidate(self, tmp_path: Path, state_path: Path) -> None:
        local = tmp_path / "local"
        cache = make_cache_dir(local / "Amazon" / "Kindle" / "Cache")
        settings = CatalogSettings(
            user_profile=tmp_path / "empty-profile", local_app_data=local, state_path=state_path
        )
        resolution = PathResolver(settings).resolve()
        assert resolution.paths is not None
        assert resolution.paths.base_dir == cache


class TestPathResolverPersistence:
    """Tests for the persisted resolution and its validity window."""

    def test_cache_expires_after_validity(self, settings: CatalogSettings) -> None:
        clock = FakeClock()
        resolver = PathResolver(settings, clock=clock)
        resolver.resolve()

        clock.now = START + timedelta(hours=23)
        assert resolver.resolve().source == SOURCE_CACHED

        clock.now = START + timedelta(hours=25)
        assert resolver.resolve().source == SOURCE_AUTO

    def test_future_timestamp_counts_as_stale(self, settings: CatalogSettings) -> None:
        clock = FakeClock()
        resolver = PathResolver(settings, clock=clock)
        resolver.resolve()

        clock.now = START - timedelta(minutes=5)
        assert resolver.resolve().source == SOURCE_AUTO

    def test_cached_directory_that_disappeared_is_redetected(
        self, tmp_path: Path, state_path: Path
    ) -> None:
        first = make_cache_dir(tmp_path / "first")
        PathResolver(CatalogSettings(cache_dir_override=first, state_path=state_path)).resolve()
        (first / XML_NAME).unlink()

        second = make_cache_dir(tmp_path / "second")
        resolver = PathResolver(CatalogSettings(cache_dir_override=second, state_path=state_path))
        resolution = resolver.resolve()
        assert resolution.source == SOURCE_AUTO
        assert resolution.paths is not None
        assert resolution.paths.base_dir == second

    def test_unparsable_state_is_ignored(self, resolver: PathResolver, state_path: Path) -> None:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        state_path.write_text("{not json", encoding="utf-8")
        assert resolver.current_configuration() is None
        assert resolver.resolve().source == SOURCE_AUTO

    def test_state_save_failure_does_not_fail_resolution(
        self, kindle_cache: Path, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        settings = CatalogSettings(
            cache_dir_override=kindle_cache, state_path=blocker / "paths.json"
        )
        resolution = PathResolver(settings).resolve()
        assert resolution.success

    def test_clear_configuration(self, resolver: PathResolver, state_path: Path) -> None:
        resolver.resolve()
        assert resolver.current_configuration() is not None
        resolver.clear_configuration()
        assert not state_path.exists()
        assert resolver.current_configuration() is None

    def test_clear_configuration_without_state(self, resolver: PathResolver) -> None:
        resolver.clear_configuration()


class TestPathConfiguration:
    """Tests for PathConfiguration parsing."""

    def test_round_trip(self, tmp_path: Path) -> None:
        config = PathConfiguration(tmp_path, START, SOURCE_MANUAL)
        assert PathConfiguration.from_dict(json.loads(config.to_json())) == config

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {"kindle_cache_path": "", "last_validated": "2024-01-01T00:00:00", "source": "auto"},
            {"kindle_cache_path": "/x", "last_validated": "yesterday", "source": "auto"},
            {"kindle_cache_path": "/x", "last_validated": "2024-01-01T00:00:00", "source": "explicit"},
        ],
    )
    def test_malformed_documents_are_rejected(self, data: object) -> None:
        assert PathConfiguration.from_dict(data) is None


class TestManualPath:
    """Tests for PathResolver.set_manual_path."""

    def test_valid_manual_path_is_persisted(
        self, resolver: PathResolver, kindle_cache: Path
    ) -> None:
        resolution = resolver.set_manual_path(str(kindle_cache))
        assert resolution.success
        assert resolution.source == SOURCE_MANUAL
        config = resolver.current_configuration()
        assert config is not None
        assert config.source == SOURCE_MANUAL
        assert config.kindle_cache_path == kindle_cache

    def test_manual_path_is_used_by_next_resolution(
        self, kindle_cache: Path, state_path: Path
    ) -> None:
        resolver = PathResolver(CatalogSettings(state_path=state_path))
        resolver.set_manual_path(str(kindle_cache))
        resolution = resolver.resolve()
        assert resolution.source == SOURCE_CACHED
        assert resolution.paths is not None
        assert resolution.paths.base_dir == kindle_cache

    def test_traversal_is_rejected_without_touching_state(
        self, resolver: PathResolver, state_path: Path
    ) -> None:
        resolution = resolver.set_manual_path("../../etc")
        assert not resolution.success
        assert isinstance(resolution.failure, PathSecurityError)
        assert not state_path.exists()

    def test_directory_without_files_fails(self, resolver: PathResolver, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        resolution = resolver.set_manual_path(str(empty))
        assert not resolution.success
        assert isinstance(resolution.failure, PathNotFoundError)


class TestResolutionFailure:
    """Tests for the not-found outcome."""

    def test_lists_searched_paths(self, tmp_path: Path, state_path: Path) -> None:
        settings = CatalogSettings(
            cache_dir_override=tmp_path / "a",
            user_profile=tmp_path / "b",
            state_path=state_path,
        )
        resolution = PathResolver(settings).resolve()
        assert not resolution.success
        assert resolution.searched_paths == [
            tmp_path / "a",
            tmp_path / "b" / "AppData" / "Local" / "Amazon" / "Kindle" / "Cache",
        ]
        assert resolution.error is not None
        assert str(tmp_path / "a") in resolution.error

    def test_raise_for_failure(self, state_path: Path) -> None:
        resolution = PathResolver(CatalogSettings(state_path=state_path)).resolve()
        with pytest.raises(PathNotFoundError):
            resolution.raise_for_failure()

    def test_failed_explicit_overrides_are_listed(self, tmp_path: Path, state_path: Path) -> None:
        xml = tmp_path / "gone" / XML_NAME
        db = tmp_path / "gone" / "books.db"
        settings = CatalogSettings(xml_override=xml, db_override=db, state_path=state_path)
        resolution = PathResolver(settings).resolve()
        assert not resolution.success
        assert resolution.searched_paths == [xml, db]
        assert resolution.error is not None
        assert str(xml) in resolution.error

    def test_failed_cached_directory_is_listed(self, tmp_path: Path, state_path: Path) -> None:
        remembered = make_cache_dir(tmp_path / "remembered")
        PathResolver(
            CatalogSettings(cache_dir_override=remembered, state_path=state_path)
        ).resolve()
        (remembered / XML_NAME).unlink()

        elsewhere = tmp_path / "elsewhere"
        settings = CatalogSettings(cache_dir_override=elsewhere, state_path=state_path)
        resolution = PathResolver(settings).resolve()
        assert not resolution.success
        assert resolution.searched_paths == [remembered, elsewhere]

    def test_failed_cached_directory_is_not_listed_twice(
        self, tmp_path: Path, state_path: Path
    ) -> None:
        remembered = make_cache_dir(tmp_path / "remembered")
        settings = CatalogSettings(cache_dir_override=remembered, state_path=state_path)
        PathResolver(settings).resolve()
        (remembered / XML_NAME).unlink()

        resolution = PathResolver(settings).resolve()
        assert resolution.searched_paths == [remembered]
