"""File watching utilities for the gitosu CLI."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from gitosu.config import GitOsuSettings, get_logger
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import SyncEngine

logger = get_logger(__name__)


class StatusCallback(Protocol):
    """Protocol for status update callbacks."""

    def __call__(self, status: str, path: Path, error: str | None = None) -> None:
        """Update status callback.

        Args:
            status: Status type (processing, committed, unchanged, error)
            path: Archive being processed
            error: Optional error message
        """
        ...


@dataclass
class _PendingArchive:
    last_event: float
    last_size: int | None = None


class ArchiveFileHandler(FileSystemEventHandler):
    """Handler for exported archives.

    Events only mark a file as pending. A dispatcher thread hands a pending
    file to the worker pool once no event arrived for the settle period and
    its size stayed the same between two polls, so archives that are still
    being written are never imported.
    """

    def __init__(
        self,
        engine: SyncEngine,
        settings: GitOsuSettings,
        callback: StatusCallback | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            engine: Engine performing the imports
            settings: Settings providing extensions and watch timings
            callback: Callback for status updates
        """
        self.engine = engine
        self.settings = settings
        self.callback = callback
        self.extensions = {ext.lower() for ext in settings.archive_extensions}
        self.settle_seconds = settings.watch_settle_seconds
        self.poll_interval = settings.watch_poll_interval
        self.max_pending = settings.watch_max_pending

        self.pending: dict[Path, _PendingArchive] = {}
        self.in_flight: set[Path] = set()
        self._lock = threading.Lock()

        self.shutdown_event = threading.Event()
        self.dispatcher_thread: threading.Thread | None = None
        self.executor: ThreadPoolExecutor | None = None

    def start_processing(self) -> None:
        """Start the worker pool and the dispatcher thread."""
        if self.executor is None:
            self.executor = ThreadPoolExecutor(
                max_workers=self.settings.watch_workers,
                thread_name_prefix="gitosu-import",
            )
        if self.dispatcher_thread is None or not self.dispatcher_thread.is_alive():
            self.shutdown_event.clear()
            self.dispatcher_thread = threading.Thread(
                target=self._dispatch_loop, name="gitosu-dispatch", daemon=True
            )
            self.dispatcher_thread.start()

    def stop_processing(self, timeout: float = 10.0) -> None:
        """Stop dispatching and wait for in-flight imports.

        Args:
            timeout: Maximum time to wait for the dispatcher thread
        """
        self.shutdown_event.set()
        if self.dispatcher_thread and self.dispatcher_thread.is_alive():
            self.dispatcher_thread.join(timeout=timeout)
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

    def is_archive(self, path: Path) -> bool:
        """Check whether a path looks like an exported archive."""
        return path.suffix.lower() in self.extensions

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record_event(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record_event(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # The game may write to a temporary name and rename when done
        if not event.is_directory:
            self._record_event(getattr(event, "dest_path", ""))

    def _record_event(self, raw_path: str | bytes) -> None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors="surrogateescape")
        if not raw_path:
            return
        path = Path(raw_path)
        if self.is_archive(path):
            self.mark_pending(path)

    def mark_pending(self, path: Path, event_time: float | None = None) -> bool:
        """Mark an archive as pending and restart its settle period.

        Args:
            path: Archive path
            event_time: Monotonic time of the event (default: now)

        Returns:
            False if the archive was dropped because too many are pending
        """
        when = time.monotonic() if event_time is None else event_time
        with self._lock:
            if path not in self.pending and len(self.pending) >= self.max_pending:
                logger.warning("Too many pending archives, dropping event", path=str(path))
                return False
            self.pending[path] = _PendingArchive(last_event=when)
        return True

    def scan_existing(self, directory: Path) -> int:
        """Queue every archive already present in ``directory``.

        Returns:
            Number of archives queued
        """
        queued = 0
        for path in sorted(directory.iterdir()):
            if path.is_file() and self.is_archive(path) and self.mark_pending(path, 0.0):
                queued += 1
        return queued

    def _dispatch_loop(self) -> None:
        while not self.shutdown_event.wait(self.poll_interval):
            self.dispatch_ready()

    def dispatch_ready(self, now: float | None = None) -> list[Path]:
        """Hand every settled archive to the worker pool.

        Args:
            now: Monotonic time to compare against (default: now)

        Returns:
            The archives dispatched by this call
        """
        now = time.monotonic() if now is None else now
        ready: list[Path] = []
        with self._lock:
            for path, state in list(self.pending.items()):
                if path in self.in_flight:
                    continue
                if now - state.last_event < self.settle_seconds:
                    continue
                try:
                    size = path.stat().st_size
                except FileNotFoundError:
                    logger.debug("Pending archive disappeared", path=str(path))
                    del self.pending[path]
                    continue
                except OSError as e:
                    logger.warning("Cannot inspect pending archive", path=str(path), error=str(e))
                    continue
                if state.last_size != size:
                    state.last_size = size
                    continue
                del self.pending[path]
                self.in_flight.add(path)
                ready.append(path)

        for path in ready:
            if self.executor is None:
                self._process_file(path)
            else:
                self.executor.submit(self._process_file, path)
        return ready

    def _process_file(self, path: Path) -> None:
        """Import a single archive, reporting but never raising errors.

        Args:
            path: Archive to import
        """
        try:
            if self.callback:
                self.callback("processing", path)

            result = self.engine.import_file(path)

            if self.callback:
                self.callback("committed" if result.committed else "unchanged", path)

        except GitOsuError as e:
            logger.error("Import failed", path=str(path), error=e.message, hint=e.hint)
            if self.callback:
                self.callback("error", path, e.message)
        except Exception as e:
            logger.exception("Unexpected error while importing", path=str(path))
            if self.callback:
                self.callback("error", path, str(e))
        finally:
            with self._lock:
                self.in_flight.discard(path)
