"""Synchronization between map archives and map repositories.

An import walks through these states::

    DECODED -> MATERIALIZED -> DIFFED -> COMMITTED | NOOP_SKIPPED -> DONE

Decoding happens before any repository is touched. Everything from
materialization to the commit runs while holding the map's lock, so two
exports of the same map never interleave. A failure before the commit
restores the managed files from the latest snapshot and leaves history
untouched.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath

import git

from gitosu.archive import ArchiveCodec, LogicalFileSet
from gitosu.config import GitOsuSettings, get_logger, get_settings
from gitosu.exceptions import (
    FileSystemError,
    GitError,
    GitOsuError,
    MalformedArchiveError,
    SnapshotNotFoundError,
)
from gitosu.synchronizer.identity import resolve_identity, safe_dirname
from gitosu.synchronizer.locks import IdentityLockTable
from gitosu.synchronizer.models import (
    ExportResult,
    ImportResult,
    ImportState,
    PendingImport,
)
from gitosu.synchronizer.store import MapRepository, RepositoryStore

logger = get_logger(__name__)

IMPORT_MESSAGE = "Map update: {archive_name}"


class SyncEngine:
    """Imports archives into repositories and rebuilds archives from history."""

    def __init__(
        self,
        store: RepositoryStore,
        settings: GitOsuSettings | None = None,
        codec: ArchiveCodec | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Repository store owning the identity to repository mapping
            settings: Application settings (default: the store's settings)
            codec: Archive codec (default: configured from settings)
        """
        self.store = store
        self.settings = settings or store.settings
        self.codec = codec or ArchiveCodec.from_settings(self.settings)
        self._locks = IdentityLockTable()

    @classmethod
    def from_settings(cls, settings: GitOsuSettings | None = None) -> SyncEngine:
        """Create an engine for the configured repositories directory."""
        settings = settings or get_settings()
        return cls(RepositoryStore(settings.repositories_dir, settings), settings)

    # Import path

    def import_file(self, path: Path, identity_override: str | None = None) -> ImportResult:
        """Import an archive file from disk.

        Args:
            path: Archive to import
            identity_override: Explicit repository identity

        Returns:
            The import result

        Raises:
            FileSystemError: If the archive cannot be read
        """
        try:
            pending = PendingImport.from_path(path, identity_override)
        except OSError as e:
            raise FileSystemError(
                message=f"Failed to read archive: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        return self.import_archive(pending)

    def import_archive(self, pending: PendingImport) -> ImportResult:
        """Import one archive into its map repository.

        Args:
            pending: The archive to import

        Returns:
            The import result; ``commit`` is None when nothing changed

        Raises:
            MalformedArchiveError: If the archive is not a readable zip or empty
            UnsupportedEntryError: If an entry cannot be round-tripped
            InvalidNameError: If no identity can be derived from the name
            FileSystemError: If writing the working tree fails
            GitError: If git fails to stage or commit
        """
        log = logger.bind(archive=pending.name)
        states: list[ImportState] = []

        files = self.codec.decode(pending.data)
        if not files:
            raise MalformedArchiveError(
                message="Exported archive is empty",
                hint="Export the map again from the editor",
                details={"archive": pending.name},
            )
        states.append(ImportState.DECODED)

        identity = resolve_identity(pending.name, pending.identity_override)
        log = log.bind(identity=identity)
        log.info("Importing archive", files=len(files), size=files.total_size)

        with self._locks.hold(self.store.lock_key(identity)):
            map_repo = self.store.get_or_create(identity)
            result = ImportResult(
                identity=identity,
                archive_name=pending.name,
                repository=map_repo.path,
                states=states,
                file_count=len(files),
                digest=files.digest(),
            )
            try:
                self._materialize(map_repo, files)
                staged = [map_repo.managed_dir]
                if self.settings.keep_latest_archive:
                    staged.append(self._keep_archive(map_repo, pending))
                states.append(ImportState.MATERIALIZED)

                result.changed_paths = self._stage(map_repo, staged)
                states.append(ImportState.DIFFED)

                if not result.changed_paths:
                    states.append(ImportState.NOOP_SKIPPED)
                    log.info("No changes since the latest snapshot, skipping commit")
                else:
                    result.commit = self._commit(
                        map_repo, IMPORT_MESSAGE.format(archive_name=pending.name), staged
                    )
                    states.append(ImportState.COMMITTED)
                    log.info(
                        "Committed map update",
                        commit=result.commit[:7],
                        changed=len(result.changed_paths),
                    )
            except (GitOsuError, OSError, git.exc.GitError) as e:
                log.error(
                    "Import failed",
                    state=ImportState.FAILED.value,
                    after=states[-1].value,
                    error=str(e),
                )
                self._restore(map_repo, staged_paths=self._restorable(map_repo))
                if isinstance(e, GitOsuError):
                    raise
                if isinstance(e, git.exc.GitError):
                    raise GitError(
                        message=f"git failed while importing {pending.name}",
                        details={"repository": str(map_repo.path), "error": str(e)},
                    ) from e
                raise FileSystemError(
                    message=f"Failed to update repository for {identity}",
                    details={"repository": str(map_repo.path), "error": str(e)},
                ) from e

        states.append(ImportState.DONE)
        return result

    def _materialize(self, map_repo: MapRepository, files: LogicalFileSet) -> None:
        """Make the managed subtree mirror ``files`` exactly."""
        managed = map_repo.managed_path
        managed.mkdir(parents=True, exist_ok=True)

        for path in sorted(managed.rglob("*"), reverse=True):
            rel = path.relative_to(managed).as_posix()
            if path.is_symlink() or path.is_file():
                if rel not in files:
                    path.unlink()
            elif path.is_dir() and rel in files:
                shutil.rmtree(path)

        written = 0
        for rel in files.sorted_paths():
            target = managed.joinpath(*PurePosixPath(rel).parts)
            data = files[rel]
            if target.is_file() and target.read_bytes() == data:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            written += 1

        # Directories emptied by removals; deepest first
        for path in sorted(managed.rglob("*"), key=lambda p: len(p.parts), reverse=True):
            if path.is_dir() and not path.is_symlink() and not any(path.iterdir()):
                path.rmdir()

        logger.debug(
            "Materialized map files",
            identity=map_repo.identity,
            files=len(files),
            written=written,
        )

    def _keep_archive_name(self, map_repo: MapRepository) -> str:
        return safe_dirname(map_repo.identity) + self.settings.archive_extensions[0]

    def _keep_archive(self, map_repo: MapRepository, pending: PendingImport) -> str:
        name = self._keep_archive_name(map_repo)
        (map_repo.path / name).write_bytes(pending.data)
        return name

    def _restorable(self, map_repo: MapRepository) -> list[str]:
        paths = [map_repo.managed_dir]
        if self.settings.keep_latest_archive:
            paths.append(self._keep_archive_name(map_repo))
        return paths

    @staticmethod
    def _stage(map_repo: MapRepository, paths: list[str]) -> list[str]:
        """Stage ``paths`` and return the files below them that differ from HEAD."""
        repo = map_repo.repo
        repo.git.add("--all", "--force", "--", *paths)
        output = repo.git.diff(
            "--cached", "--name-only", "--no-renames", "-z", "HEAD", "--", *paths
        )
        return sorted(name for name in output.split("\0") if name)

    def _commit(self, map_repo: MapRepository, message: str, paths: list[str]) -> str:
        """Commit ``paths`` only, leaving anything else in the index staged."""
        repo = map_repo.repo
        actor = self.store.commit_actor()
        reader = repo.config_reader()
        author = actor or git.Actor.author(reader)
        committer = actor or git.Actor.committer(reader)
        env = {
            "GIT_AUTHOR_NAME": author.name or "",
            "GIT_AUTHOR_EMAIL": author.email or "",
            "GIT_COMMITTER_NAME": committer.name or "",
            "GIT_COMMITTER_EMAIL": committer.email or "",
        }
        repo.git.commit("--quiet", "--only", "-m", message, "--", *paths, env=env)
        return repo.head.commit.hexsha

    @staticmethod
    def _restore(map_repo: MapRepository, staged_paths: list[str]) -> None:
        """Put ``staged_paths`` back to their state in HEAD."""
        repo = map_repo.repo
        head = map_repo.head_commit()
        for path in staged_paths:
            try:
                repo.git.reset("-q", "HEAD", "--", path)
                repo.git.clean("-fdq", "--", path)
                if head is not None and _tree_contains(head, path):
                    repo.git.checkout("HEAD", "--", path)
            except git.exc.GitError as e:
                logger.error(
                    "Failed to restore files from the latest snapshot",
                    identity=map_repo.identity,
                    path=path,
                    error=str(e),
                )

    # Export path

    def read_snapshot(
        self, map_repo: MapRepository, ref: str | None = None
    ) -> tuple[git.Commit, LogicalFileSet]:
        """Read the managed files of a snapshot from the object database.

        The working tree is not touched.

        Args:
            map_repo: Repository to read from
            ref: Snapshot reference, defaults to the latest snapshot

        Returns:
            The resolved commit and its map files

        Raises:
            SnapshotNotFoundError: If the reference does not resolve or the
                snapshot has no map files
        """
        commit = map_repo.resolve(ref)
        files = LogicalFileSet()
        managed = PurePosixPath(map_repo.managed_dir)

        try:
            tree = commit.tree / map_repo.managed_dir
        except KeyError:
            tree = None

        if tree is not None and tree.type == "tree":
            for item in tree.traverse():
                if item.type != "blob":
                    continue
                rel = PurePosixPath(item.path).relative_to(managed).as_posix()
                files.add(rel, item.data_stream.read())

        if not files:
            raise SnapshotNotFoundError(
                message=f"Snapshot {commit.hexsha[:7]} contains no map files",
                hint="The first commit of a map repository only holds the scaffold",
                details={"repository": str(map_repo.path), "commit": commit.hexsha},
            )
        return commit, files

    def default_export_name(self, map_repo: MapRepository, commit: git.Commit) -> str:
        """File name used when no output file is given."""
        extension = self.settings.archive_extensions[0]
        return f"{safe_dirname(map_repo.identity)}-{commit.hexsha[:7]}{extension}"

    def export_snapshot(
        self,
        map_repo: MapRepository,
        ref: str | None = None,
        output: Path | None = None,
    ) -> ExportResult:
        """Rebuild an archive from a snapshot.

        Args:
            map_repo: Repository to export from
            ref: Snapshot reference, defaults to the latest snapshot
            output: Output file or directory (default: current directory)

        Returns:
            The export result

        Raises:
            SnapshotNotFoundError: If the snapshot cannot be read; nothing is
                written in that case
            FileSystemError: If the archive cannot be written
        """
        with self._locks.hold(self.store.lock_key(map_repo.identity)):
            commit, files = self.read_snapshot(map_repo, ref)

        data = self.codec.encode(files)

        target = output if output is not None else Path.cwd()
        if target.is_dir():
            target = target / self.default_export_name(map_repo, commit)

        write_atomic(target, data)
        logger.info(
            "Exported snapshot",
            identity=map_repo.identity,
            commit=commit.hexsha[:7],
            output=str(target),
            files=len(files),
        )
        return ExportResult(
            identity=map_repo.identity,
            commit=commit.hexsha,
            output=target,
            file_count=len(files),
            size=len(data),
        )

    def export_identity(
        self, identity: str, ref: str | None = None, output: Path | None = None
    ) -> ExportResult:
        """Rebuild an archive for a map identified by name."""
        return self.export_snapshot(self.store.locate(identity), ref, output)


def _tree_contains(commit: git.Commit, path: str) -> bool:
    try:
        commit.tree / path
    except KeyError:
        return False
    return True


def write_atomic(target: Path, data: bytes) -> None:
    """Write ``data`` to ``target`` without ever exposing a partial file.

    Raises:
        FileSystemError: If the file cannot be written
    """
    directory = target.parent
    if not directory.is_dir():
        raise FileSystemError(
            message=f"Output directory does not exist: {directory}",
            details={"output": str(target)},
        )

    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{target.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise FileSystemError(
            message=f"Failed to write archive: {target}",
            details={"output": str(target), "error": str(e)},
        ) from e
