"""Filesystem watching and discovery.

watchdog delivers events on its observer thread. They are handed to the
asyncio loop with ``call_soon_threadsafe``; everything after that,
including the write-stability delay, runs on the loop thread.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Any

from rag_index_kit.indexing.ignore import IgnoreMatcher

logger = logging.getLogger(__name__)

OBSERVER_JOIN_TIMEOUT = 5.0


class FileEvent(StrEnum):
    """Events reported to the sync service."""

    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    UNLINK_DIR = "unlink_dir"


EventCallback = Callable[[FileEvent, Path], None]


def discover_files(project_root: Path, matcher: IgnoreMatcher) -> list[Path]:
    """Enumerate every non-ignored file under ``project_root``.

    Uses os.walk with in-place directory pruning so ignored trees such as
    node_modules or .git are never descended into.

    Returns:
        Absolute file paths in walk order.
    """
    files = []
    for root, dirs, filenames in os.walk(project_root):
        root_path = Path(root)
        try:
            relative_root = PurePosixPath(root_path.relative_to(project_root).as_posix())
        except ValueError:
            continue

        dirs[:] = sorted(d for d in dirs if not matcher.is_dir_ignored(relative_root / d))

        for filename in sorted(filenames):
            relative = relative_root / filename
            if matcher.is_ignored(relative):
                continue
            files.append(root_path / filename)

    logger.debug(f"Discovered {len(files)} files under {project_root}")
    return files


class FileWatcher:
    """Watch a directory tree and report add/change/unlink events.

    ``add`` and ``change`` are held until the path has been quiet for
    ``write_stability_delay`` seconds, so a file being written is reported
    once. ``unlink`` is reported immediately and drops any held event.
    """

    def __init__(
        self,
        project_root: Path,
        matcher: IgnoreMatcher,
        on_event: EventCallback,
        loop: asyncio.AbstractEventLoop,
        write_stability_delay: float = 0.5,
    ):
        """Initialize file watcher.

        Args:
            project_root: Root directory to watch.
            matcher: Ignore rules shared with discovery.
            on_event: Called on the loop thread with ``(event, absolute_path)``.
            loop: Event loop that receives events.
            write_stability_delay: Quiet period before add/change is reported.
        """
        self.project_root = project_root
        self.matcher = matcher
        self.on_event = on_event
        self.write_stability_delay = write_stability_delay
        self._loop = loop
        self._observer: Any = None
        self._held: dict[Path, tuple[FileEvent, asyncio.TimerHandle]] = {}
        self._running = False

    def discover(self) -> list[Path]:
        """Enumerate existing files without emitting events."""
        return discover_files(self.project_root, self.matcher)

    def _relative(self, path: Path) -> PurePosixPath | None:
        try:
            return PurePosixPath(path.relative_to(self.project_root).as_posix())
        except ValueError:
            return None

    def _should_report(self, path: Path) -> bool:
        relative = self._relative(path)
        return relative is not None and not self.matcher.is_ignored(relative)

    def _dispatch(self, kind: FileEvent, path: Path) -> None:
        """Hand a raw event from the observer thread to the loop."""
        if not self._running:
            return
        try:
            self._loop.call_soon_threadsafe(self._on_raw_event, kind, path)
        except RuntimeError:
            # Loop closed while the observer was still delivering
            logger.debug(f"Dropped {kind} for {path}: event loop closed")

    def _on_raw_event(self, kind: FileEvent, path: Path) -> None:
        if not self._running:
            return
        try:
            if kind == FileEvent.UNLINK_DIR:
                if self._relative(path) is not None:
                    self._drop_held_under(path)
                    self.on_event(kind, path)
                return

            if not self._should_report(path):
                return

            if kind == FileEvent.UNLINK:
                held = self._held.pop(path, None)
                if held:
                    held[1].cancel()
                self.on_event(kind, path)
                return

            # add wins over change while an event is still held
            previous = self._held.pop(path, None)
            if previous:
                previous[1].cancel()
                if previous[0] == FileEvent.ADD:
                    kind = FileEvent.ADD
            handle = self._loop.call_later(self.write_stability_delay, self._release, path)
            self._held[path] = (kind, handle)
        except Exception:
            logger.error(f"Watcher failed handling {kind} for {path}", exc_info=True)

    def _release(self, path: Path) -> None:
        held = self._held.pop(path, None)
        if held is None or not self._running:
            return
        try:
            self.on_event(held[0], path)
        except Exception:
            logger.error(f"Watcher callback failed for {path}", exc_info=True)

    def _drop_held_under(self, directory: Path) -> None:
        for path in [p for p in self._held if p.is_relative_to(directory)]:
            self._held.pop(path)[1].cancel()

    def start(self) -> bool:
        """Start the watchdog observer.

        Returns:
            True if the watcher started.
        """
        if self._running:
            logger.info("File watcher already running")
            return True

        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer

        watcher = self

        class EventHandler(FileSystemEventHandler):
            def on_created(self, event: Any) -> None:
                if not event.is_directory:
                    watcher._dispatch(FileEvent.ADD, Path(os.fsdecode(event.src_path)))

            def on_modified(self, event: Any) -> None:
                if not event.is_directory:
                    watcher._dispatch(FileEvent.CHANGE, Path(os.fsdecode(event.src_path)))

            def on_deleted(self, event: Any) -> None:
                kind = FileEvent.UNLINK_DIR if event.is_directory else FileEvent.UNLINK
                watcher._dispatch(kind, Path(os.fsdecode(event.src_path)))

            def on_moved(self, event: Any) -> None:
                src = Path(os.fsdecode(event.src_path))
                dest = Path(os.fsdecode(event.dest_path))
                if event.is_directory:
                    watcher._dispatch(FileEvent.UNLINK_DIR, src)
                    for path in discover_files(dest, IgnoreMatcher()):
                        watcher._dispatch(FileEvent.ADD, path)
                    return
                watcher._dispatch(FileEvent.UNLINK, src)
                watcher._dispatch(FileEvent.ADD, dest)

        self._running = True
        try:
            self._observer = Observer()
            self._observer.schedule(EventHandler(), str(self.project_root), recursive=True)
            self._observer.start()
        except OSError as e:
            logger.error(f"Failed to start file watcher for {self.project_root}: {e}")
            self._running = False
            self._observer = None
            return False

        logger.info(f"File watcher started for {self.project_root}")
        return True

    def cancel_pending(self) -> None:
        """Drop held events. Must be called on the loop thread."""
        for _, handle in self._held.values():
            handle.cancel()
        self._held.clear()

    def stop(self) -> None:
        """Stop the observer thread. Safe to call from a worker thread."""
        if not self._running:
            return
        self._running = False

        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=OBSERVER_JOIN_TIMEOUT)
            self._observer = None

        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        """Check if watcher is running."""
        return self._running

    def get_pending_count(self) -> int:
        """Number of events waiting out the write-stability delay."""
        return len(self._held)
