"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from gitosu.config import GitOsuSettings, reset_settings, set_settings
from gitosu.synchronizer import RepositoryStore, SyncEngine
from tests.helpers import SAMPLE_MAP, build_archive

ArchiveFactory = Callable[..., bytes]


@pytest.fixture
def archive_factory() -> ArchiveFactory:
    """Return a function building archive bytes from a path/content dict."""
    return build_archive


@pytest.fixture
def sample_files() -> dict[str, bytes | str]:
    """Files of a small map export."""
    return dict(SAMPLE_MAP)


@pytest.fixture
def exports_dir(tmp_path: Path) -> Path:
    path = tmp_path / "exports"
    path.mkdir()
    return path


@pytest.fixture
def repositories_dir(tmp_path: Path) -> Path:
    path = tmp_path / "repositories"
    path.mkdir()
    return path


@pytest.fixture
def settings(exports_dir: Path, repositories_dir: Path) -> GitOsuSettings:
    """Isolated settings pointing at temporary directories."""
    return GitOsuSettings(
        exports_dir=exports_dir,
        repositories_dir=repositories_dir,
        commit_author_name="Test Mapper",
        commit_author_email="mapper@example.com",
        watch_settle_seconds=0.0,
        watch_poll_interval=0.05,
    )


@pytest.fixture
def store(settings: GitOsuSettings) -> RepositoryStore:
    return RepositoryStore(settings.repositories_dir, settings)


@pytest.fixture
def engine(store: RepositoryStore, settings: GitOsuSettings) -> SyncEngine:
    return SyncEngine(store, settings)


@pytest.fixture(autouse=True)
def isolated_settings(request, tmp_path, monkeypatch):
    """Run every test with settings that cannot touch the real environment."""
    for name in ("GITOSU_EXPORTS_DIR", "GITOSU_REPOSITORIES_DIR", "GITOSU_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    reset_settings()
    set_settings(request.getfixturevalue("settings"))

    yield

    reset_settings()
