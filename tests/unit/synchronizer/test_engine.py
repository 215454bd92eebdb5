"""Tests for the synchronization engine."""

import threading
from pathlib import Path
from unittest.mock import patch

import git
import pytest

from gitosu.archive import LogicalFileSet, decode
from gitosu.exceptions import (
    FileSystemError,
    GitError,
    InvalidNameError,
    MalformedArchiveError,
    RepositoryNotFoundError,
    SnapshotNotFoundError,
)
from gitosu.synchronizer import ImportState, PendingImport, write_atomic
from gitosu.synchronizer.engine import IMPORT_MESSAGE
from tests.helpers import build_archive, write_export

NAME = "Artist - Title (Mapper).osz"
IDENTITY = "Artist - Title (Mapper)"


def pending(files, name=NAME, override=None):
    return PendingImport(name=name, data=build_archive(files), identity_override=override)


def commit_count(map_repo):
    return len(list(map_repo.repo.iter_commits("HEAD")))


class TestImport:
    """Test importing archives."""

    def test_first_import_commits(self, engine, store, sample_files):
        result = engine.import_archive(pending(sample_files))

        assert result.committed
        assert result.identity == IDENTITY
        assert result.states == [
            ImportState.DECODED,
            ImportState.MATERIALIZED,
            ImportState.DIFFED,
            ImportState.COMMITTED,
            ImportState.DONE,
        ]
        map_repo = store.locate(IDENTITY)
        assert commit_count(map_repo) == 2
        assert map_repo.repo.head.commit.hexsha == result.commit
        assert map_repo.repo.head.commit.message.strip() == IMPORT_MESSAGE.format(
            archive_name=NAME
        )

    def test_materializes_exact_bytes(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        managed = store.locate(IDENTITY).managed_path

        on_disk = LogicalFileSet.from_directory(managed)
        assert on_disk == decode(build_archive(sample_files))
        osu = (managed / "Artist - Title (Mapper) [Normal].osu").read_bytes()
        assert b"\r\n" in osu

    def test_repeat_import_is_noop(self, engine, store, sample_files):
        first = engine.import_archive(pending(sample_files))
        second = engine.import_archive(pending(sample_files))

        assert first.committed
        assert not second.committed
        assert second.commit is None
        assert ImportState.NOOP_SKIPPED in second.states
        assert second.states[-1] == ImportState.DONE
        assert commit_count(store.locate(IDENTITY)) == 2

    def test_counter_suffixed_export_joins_history(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        changed = dict(sample_files, **{"extra.osu": "new difficulty"})
        result = engine.import_archive(pending(changed, name="Artist - Title (Mapper) (2).osz"))

        assert result.identity == IDENTITY
        assert result.committed
        assert commit_count(store.locate(IDENTITY)) == 3
        assert len(store.list_repositories()) == 1

    def test_override_selects_repository(self, engine, store, sample_files):
        result = engine.import_archive(pending(sample_files, name="renamed.osz", override=IDENTITY))
        assert result.identity == IDENTITY
        assert store.locate(IDENTITY).path == result.repository

    def test_stale_files_removed(self, engine, store):
        engine.import_archive(pending({"a.osu": "a", "sb/old.png": b"old", "keep/x.png": b"x"}))
        result = engine.import_archive(pending({"a.osu": "a", "keep/x.png": b"x"}))

        managed = store.locate(IDENTITY).managed_path
        assert not (managed / "sb").exists()
        assert (managed / "keep" / "x.png").is_file()
        assert result.changed_paths == ["map/sb/old.png"]

    def test_directory_replaced_by_file(self, engine, store):
        engine.import_archive(pending({"x/y.osu": "nested"}))
        engine.import_archive(pending({"x": "flat"}))

        managed = store.locate(IDENTITY).managed_path
        assert (managed / "x").read_text() == "flat"

    def test_unmanaged_files_untouched(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        readme = map_repo.path / "README.md"
        original = map_repo.repo.head.commit.tree["README.md"].data_stream.read()
        readme.write_text("my own notes\n", encoding="utf-8")
        (map_repo.path / "notes.txt").write_text("scratch", encoding="utf-8")

        engine.import_archive(pending(dict(sample_files, **{"new.osu": "x"})))

        head_tree = map_repo.repo.head.commit.tree
        assert readme.read_text(encoding="utf-8") == "my own notes\n"
        assert head_tree["README.md"].data_stream.read() == original
        assert "notes.txt" not in [item.path for item in head_tree]

    def test_staged_unmanaged_change_not_committed(self, engine, store, sample_files):
        first = engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        (map_repo.path / "README.md").write_text("my own notes\n", encoding="utf-8")
        map_repo.repo.git.add("README.md")

        again = engine.import_archive(pending(sample_files))

        assert not again.committed
        assert again.changed_paths == []
        assert map_repo.repo.head.commit.hexsha == first.commit
        assert map_repo.repo.git.diff("--cached", "--name-only") == "README.md"

    def test_commit_leaves_staged_unmanaged_change_in_index(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        original = map_repo.repo.head.commit.tree["README.md"].data_stream.read()
        (map_repo.path / "README.md").write_text("my own notes\n", encoding="utf-8")
        map_repo.repo.git.add("README.md")

        result = engine.import_archive(pending(dict(sample_files, **{"new.osu": "x"})))

        head = map_repo.repo.head.commit
        assert result.committed
        assert result.changed_paths == ["map/new.osu"]
        assert head.tree["README.md"].data_stream.read() == original
        assert head.tree["map/new.osu"].data_stream.read() == b"x"
        assert head.author.name == "Test Mapper"
        assert map_repo.repo.git.diff("--cached", "--name-only") == "README.md"

    def test_empty_archive_is_malformed(self, engine, repositories_dir):
        with pytest.raises(MalformedArchiveError, match="empty"):
            engine.import_archive(pending({}))
        assert list(repositories_dir.iterdir()) == []

    def test_malformed_archive_touches_nothing(self, engine, repositories_dir):
        with pytest.raises(MalformedArchiveError):
            engine.import_archive(PendingImport(name=NAME, data=b"not a zip"))
        assert list(repositories_dir.iterdir()) == []

    def test_nested_file_conflict_touches_nothing(self, engine, repositories_dir):
        with pytest.raises(MalformedArchiveError, match="nested"):
            engine.import_archive(pending({"x": "flat", "x/y.osu": "nested"}))
        assert list(repositories_dir.iterdir()) == []

    def test_invalid_name_touches_nothing(self, engine, repositories_dir, sample_files):
        with pytest.raises(InvalidNameError):
            engine.import_archive(pending(sample_files, name=" (2).osz"))
        assert list(repositories_dir.iterdir()) == []

    def test_keep_latest_archive(self, engine, store, settings, sample_files):
        settings.keep_latest_archive = True
        request = pending(sample_files)
        engine.import_archive(request)

        map_repo = store.locate(IDENTITY)
        kept = map_repo.path / f"{IDENTITY}.osz"
        assert kept.read_bytes() == request.data
        assert f"{IDENTITY}.osz" in [item.path for item in map_repo.repo.head.commit.tree]

    def test_import_file(self, engine, exports_dir, sample_files):
        path = write_export(exports_dir, NAME, sample_files)
        result = engine.import_file(path)
        assert result.committed
        assert result.archive_name == NAME

    def test_import_missing_file(self, engine, exports_dir):
        with pytest.raises(FileSystemError):
            engine.import_file(exports_dir / "missing.osz")

    def test_concurrent_imports_same_identity(self, engine, store):
        errors = []

        def run(index):
            try:
                engine.import_archive(pending({"map.osu": f"version {index}"}))
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=run, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert commit_count(store.locate(IDENTITY)) == 6

    def test_concurrent_imports_different_identities(self, engine, store, sample_files):
        names = [f"Artist - Song {i}.osz" for i in range(4)]
        threads = [
            threading.Thread(target=engine.import_archive, args=(pending(sample_files, name=n),))
            for n in names
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store.list_repositories()) == 4


class TestImportFailure:
    """Test that failed imports leave history and working tree intact."""

    def test_commit_failure_restores_previous_snapshot(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        head_before = map_repo.repo.head.commit.hexsha
        before = LogicalFileSet.from_directory(map_repo.managed_path)

        with (
            patch.object(
                engine, "_commit", side_effect=git.GitCommandError("commit", 1)
            ),
            pytest.raises(GitError),
        ):
            engine.import_archive(pending({"other.osu": "different"}))

        assert map_repo.repo.head.commit.hexsha == head_before
        assert LogicalFileSet.from_directory(map_repo.managed_path) == before
        assert not map_repo.repo.is_dirty(untracked_files=True)

    def test_rejecting_hook_restores_previous_snapshot(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        head_before = map_repo.repo.head.commit.hexsha
        before = LogicalFileSet.from_directory(map_repo.managed_path)
        hook = Path(map_repo.repo.git_dir) / "hooks" / "pre-commit"
        hook.parent.mkdir(exist_ok=True)
        hook.write_text("#!/bin/sh\nexit 1\n", encoding="utf-8")
        hook.chmod(0o755)

        with pytest.raises(GitError):
            engine.import_archive(pending({"other.osu": "different"}))

        assert map_repo.repo.head.commit.hexsha == head_before
        assert LogicalFileSet.from_directory(map_repo.managed_path) == before
        assert not map_repo.repo.is_dirty(untracked_files=True)

    def test_hook_error_is_wrapped(self, engine, store, sample_files):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        head_before = map_repo.repo.head.commit.hexsha

        with (
            patch.object(
                engine,
                "_commit",
                side_effect=git.exc.HookExecutionError("pre-commit", 1),
            ),
            pytest.raises(GitError, match="git failed"),
        ):
            engine.import_archive(pending({"other.osu": "different"}))

        assert map_repo.repo.head.commit.hexsha == head_before
        assert not map_repo.repo.is_dirty(untracked_files=True)

    def test_failure_on_first_import_clears_managed_files(self, engine, store, sample_files):
        with (
            patch.object(engine, "_commit", side_effect=OSError("disk full")),
            pytest.raises(FileSystemError),
        ):
            engine.import_archive(pending(sample_files))

        map_repo = store.locate(IDENTITY)
        assert commit_count(map_repo) == 1
        assert LogicalFileSet.from_directory(map_repo.managed_path) == {}
        assert not map_repo.repo.is_dirty(untracked_files=True)


class TestExport:
    """Test rebuilding archives from snapshots."""

    def test_export_latest_and_previous(self, engine, store, sample_files, tmp_path):
        first = dict(sample_files)
        second = dict(sample_files, **{"Artist - Title (Mapper) [Normal].osu": "changed"})
        engine.import_archive(pending(first))
        engine.import_archive(pending(second))
        map_repo = store.locate(IDENTITY)

        latest = engine.export_snapshot(map_repo, output=tmp_path / "latest.osz")
        previous = engine.export_snapshot(map_repo, "HEAD~1", tmp_path / "previous.osz")

        assert decode(latest.output.read_bytes()) == decode(build_archive(second))
        assert decode(previous.output.read_bytes()) == decode(build_archive(first))
        assert latest.commit == map_repo.repo.head.commit.hexsha
        assert latest.file_count == len(second)
        assert latest.size == latest.output.stat().st_size

    def test_export_by_sha(self, engine, store, sample_files, tmp_path):
        result = engine.import_archive(pending(sample_files))
        engine.import_archive(pending({"only.osu": "x"}))
        map_repo = store.locate(IDENTITY)

        exported = engine.export_snapshot(map_repo, result.commit[:7], tmp_path / "a.osz")
        assert exported.commit == result.commit
        assert decode(exported.output.read_bytes()) == decode(build_archive(sample_files))

    def test_export_is_deterministic(self, engine, store, sample_files, tmp_path):
        engine.import_archive(pending(sample_files))
        map_repo = store.locate(IDENTITY)
        one = engine.export_snapshot(map_repo, output=tmp_path / "one.osz")
        two = engine.export_snapshot(map_repo, output=tmp_path / "two.osz")
        assert one.output.read_bytes() == two.output.read_bytes()

    def test_export_default_name_in_directory(self, engine, store, sample_files, tmp_path):
        result = engine.import_archive(pending(sample_files))
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        exported = engine.export_snapshot(store.locate(IDENTITY), output=out_dir)
        assert exported.output == out_dir / f"{IDENTITY}-{result.commit[:7]}.osz"
        assert exported.output.is_file()

    def test_export_defaults_to_current_directory(self, engine, store, sample_files, tmp_path):
        engine.import_archive(pending(sample_files))
        exported = engine.export_snapshot(store.locate(IDENTITY))
        assert exported.output.parent == tmp_path

    def test_reimporting_export_is_noop(self, engine, store, sample_files, tmp_path):
        engine.import_archive(pending(sample_files))
        exported = engine.export_identity(IDENTITY, output=tmp_path / "again.osz")

        result = engine.import_file(exported.output, identity_override=IDENTITY)
        assert not result.committed

    def test_unknown_ref_writes_nothing(self, engine, store, sample_files, tmp_path):
        engine.import_archive(pending(sample_files))
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        with pytest.raises(SnapshotNotFoundError):
            engine.export_snapshot(store.locate(IDENTITY), "does-not-exist", out_dir)
        assert list(out_dir.iterdir()) == []

    def test_scaffold_snapshot_has_no_map(self, engine, store, tmp_path):
        map_repo = store.get_or_create(IDENTITY)
        with pytest.raises(SnapshotNotFoundError):
            engine.export_snapshot(map_repo, output=tmp_path)

    def test_export_leaves_working_tree_alone(self, engine, store, sample_files, tmp_path):
        engine.import_archive(pending(sample_files))
        engine.import_archive(pending({"only.osu": "x"}))
        map_repo = store.locate(IDENTITY)
        before = LogicalFileSet.from_directory(map_repo.managed_path)

        engine.export_snapshot(map_repo, "HEAD~1", tmp_path / "old.osz")
        assert LogicalFileSet.from_directory(map_repo.managed_path) == before

    def test_export_identity_missing(self, engine):
        with pytest.raises(RepositoryNotFoundError):
            engine.export_identity("Nobody - Nothing")


class TestWriteAtomic:
    """Test atomic archive writes."""

    def test_replaces_existing_file(self, tmp_path):
        target = tmp_path / "out.osz"
        target.write_bytes(b"old")
        write_atomic(target, b"new")
        assert target.read_bytes() == b"new"
        assert [p.name for p in tmp_path.iterdir()] == ["out.osz"]

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileSystemError):
            write_atomic(tmp_path / "missing" / "out.osz", b"data")

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        with (
            patch("gitosu.synchronizer.engine.os.replace", side_effect=OSError("boom")),
            pytest.raises(FileSystemError),
        ):
            write_atomic(tmp_path / "out.osz", b"data")
        assert list(tmp_path.iterdir()) == []
