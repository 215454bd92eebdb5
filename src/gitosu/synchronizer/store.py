"""Repository store: one git repository per map identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import git

from gitosu.config import GitOsuSettings, get_logger, get_settings
from gitosu.exceptions import (
    FileSystemError,
    GitError,
    RepositoryNotFoundError,
    SnapshotNotFoundError,
)
from gitosu.synchronizer.identity import safe_dirname
from gitosu.synchronizer.locks import IdentityLockTable
from gitosu.synchronizer.scaffold import MARKER_FILE, read_marker, write_scaffold

logger = get_logger(__name__)

SCAFFOLD_MESSAGE = "New osu! map: {identity}"


@dataclass
class SnapshotInfo:
    """Summary of one commit in a map repository."""

    sha: str
    short_sha: str
    message: str
    author: str
    timestamp: datetime


class MapRepository:
    """A map's git repository together with its managed subtree."""

    def __init__(self, repo: git.Repo, identity: str, managed_dir: str = "map") -> None:
        """Initialize the wrapper.

        Args:
            repo: GitPython repository
            identity: Canonical map identity
            managed_dir: Subdirectory rewritten by imports
        """
        self.repo = repo
        self.identity = identity
        self.managed_dir = managed_dir

    def __repr__(self) -> str:
        return f"MapRepository(identity={self.identity!r}, path={str(self.path)!r})"

    @property
    def path(self) -> Path:
        """Working tree root."""
        if self.repo.working_tree_dir is None:
            raise GitError(message="Bare repositories are not supported")
        return Path(self.repo.working_tree_dir)

    @property
    def managed_path(self) -> Path:
        """Absolute path of the managed subtree."""
        return self.path / self.managed_dir

    def head_commit(self) -> git.Commit | None:
        """Return the latest snapshot, or None for a repository without commits."""
        if not self.repo.head.is_valid():
            return None
        return self.repo.head.commit

    def resolve(self, ref: str | None = None) -> git.Commit:
        """Resolve a snapshot reference to a commit.

        Args:
            ref: Any git revision, defaults to the latest snapshot

        Returns:
            The referenced commit

        Raises:
            SnapshotNotFoundError: If the reference does not name a commit
        """
        rev = "HEAD" if ref is None else ref.strip()
        try:
            if not rev:
                raise ValueError("empty revision")
            return self.repo.commit(rev)
        except (
            git.exc.ODBError,
            git.GitCommandError,
            IndexError,
            ValueError,
        ) as e:
            raise SnapshotNotFoundError(
                message=f"Snapshot '{rev}' not found in {self.identity}",
                hint="Run 'gitosu history' to list available snapshots",
                details={"repository": str(self.path), "reference": rev},
            ) from e

    def history(self, limit: int | None = None) -> list[SnapshotInfo]:
        """List snapshots, newest first.

        Args:
            limit: Maximum number of snapshots to return

        Returns:
            Snapshot summaries
        """
        if self.head_commit() is None:
            return []
        snapshots = []
        for commit in self.repo.iter_commits("HEAD", max_count=limit):
            message = commit.message
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            snapshots.append(
                SnapshotInfo(
                    sha=commit.hexsha,
                    short_sha=commit.hexsha[:7],
                    message=message.strip(),
                    author=str(commit.author),
                    timestamp=commit.authored_datetime,
                )
            )
        return snapshots


class RepositoryStore:
    """Maps identities to repositories below a root directory.

    The filesystem is the source of truth. Creation of a repository is
    serialized per identity so that concurrent first imports of a new map
    initialize it exactly once.
    """

    def __init__(self, root: Path, settings: GitOsuSettings | None = None) -> None:
        """Initialize the store.

        Args:
            root: Directory containing the map repositories
            settings: Application settings (default: global settings)
        """
        self.root = Path(root)
        self.settings = settings or get_settings()
        self._locks = IdentityLockTable()

    @staticmethod
    def lock_key(identity: str) -> str:
        """Key under which work on ``identity`` is serialized.

        Identities that share a directory (after encoding, or on a case
        insensitive filesystem) share a key.
        """
        return safe_dirname(identity).casefold()

    def path_for(self, identity: str) -> Path:
        """Return the repository directory for ``identity``."""
        return self.root / safe_dirname(identity)

    def commit_actor(self) -> git.Actor | None:
        """Author configured in settings, or None to use git's configuration."""
        name = self.settings.commit_author_name
        email = self.settings.commit_author_email
        if name or email:
            return git.Actor(name or "gitosu", email or "gitosu@localhost")
        return None

    def get_or_create(self, identity: str) -> MapRepository:
        """Open the repository for ``identity``, creating it when missing.

        Args:
            identity: Canonical map identity

        Returns:
            The map repository

        Raises:
            FileSystemError: If the directory exists but is not usable
            GitError: If git fails to initialize or commit the scaffold
        """
        path = self.path_for(identity)
        with self._locks.hold(self.lock_key(identity)):
            repo = self._open_or_init(path)
            if not repo.head.is_valid():
                self._scaffold(repo, path, identity)
            return self._wrap(repo, identity)

    def locate(self, identity: str) -> MapRepository:
        """Open the existing repository for ``identity``.

        Raises:
            RepositoryNotFoundError: If no repository exists for the identity
        """
        path = self.path_for(identity)
        if not (path / ".git").exists():
            raise RepositoryNotFoundError(
                message=f"No repository for map '{identity}'",
                hint="Import an export of this map first",
                details={"expected_path": str(path)},
            )
        return self._wrap(self._open(path), identity)

    def open_path(self, path: Path) -> MapRepository:
        """Open the map repository containing ``path``.

        Args:
            path: The repository root or any path inside it

        Returns:
            The map repository

        Raises:
            RepositoryNotFoundError: If ``path`` is not inside a git repository
        """
        try:
            repo = git.Repo(path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise RepositoryNotFoundError(
                message=f"Not a map repository: {path}",
                hint="Run this command inside a map repository or pass --repository",
                details={"path": str(path)},
            ) from e
        if repo.working_tree_dir is None:
            raise RepositoryNotFoundError(message=f"Bare repository at {path}")
        root = Path(repo.working_tree_dir)
        identity = read_marker(root).get("identity") or root.name
        return self._wrap(repo, str(identity))

    def list_repositories(self) -> list[MapRepository]:
        """List every managed repository below the root."""
        if not self.root.is_dir():
            return []
        repositories = []
        for child in sorted(self.root.iterdir()):
            if (child / MARKER_FILE).is_file() and (child / ".git").exists():
                try:
                    repositories.append(self.open_path(child))
                except RepositoryNotFoundError:
                    logger.warning("Skipping unreadable repository", path=str(child))
        return repositories

    def _wrap(self, repo: git.Repo, identity: str) -> MapRepository:
        root = Path(repo.working_tree_dir or ".")
        managed_dir = read_marker(root).get("managed_dir") or self.settings.managed_dir
        return MapRepository(repo, identity, str(managed_dir))

    @staticmethod
    def _open(path: Path) -> git.Repo:
        try:
            return git.Repo(path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise GitError(
                message=f"Failed to open repository: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

    def _open_or_init(self, path: Path) -> git.Repo:
        if (path / ".git").exists():
            return self._open(path)

        if path.exists() and (not path.is_dir() or any(path.iterdir())):
            raise FileSystemError(
                message=f"Cannot create map repository, path is in use: {path}",
                hint="Move the existing files away or import with --use-repository",
                details={"path": str(path)},
            )

        logger.info("Initializing map repository", path=str(path))
        try:
            path.mkdir(parents=True, exist_ok=True)
            repo = git.Repo.init(path)
            with repo.config_writer() as config:
                config.set_value("core", "autocrlf", "false")
        except OSError as e:
            raise FileSystemError(
                message=f"Failed to create repository directory: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        except git.exc.GitError as e:
            raise GitError(
                message=f"Failed to init repository: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        return repo

    def _scaffold(self, repo: git.Repo, path: Path, identity: str) -> None:
        managed_dir = self.settings.managed_dir
        try:
            written = write_scaffold(path, identity, managed_dir)
            repo.git.add("--", *written)
            actor = self.commit_actor()
            commit = repo.index.commit(
                SCAFFOLD_MESSAGE.format(identity=identity),
                author=actor,
                committer=actor,
            )
        except OSError as e:
            raise FileSystemError(
                message=f"Failed to write repository scaffold: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        except (git.exc.GitError, ValueError) as e:
            raise GitError(
                message=f"Failed to create the initial commit: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e
        logger.info("Created map repository", identity=identity, commit=commit.hexsha[:7])
