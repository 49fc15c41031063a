"""Incremental sync between a workspace tree and the vector store.

Lifecycle:
    initialize()       build the embedding provider, IndexManager and ignore rules
    start_watching()   discover files, reconcile against stored mtimes, queue
                       the difference and watch for further changes
    stop_watching()    stop the watcher and the queue consumer

Files are indexed strictly one at a time by a single consumer task.
Deletions run as separate tasks and may overlap with indexing.
"""

import asyncio
import logging
import uuid
from collections.abc import Coroutine, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Any

from rag_index_kit.config import RagServiceConfig
from rag_index_kit.constants import (
    DEFAULT_QUERY_TOP_K,
    META_FILE_MTIME,
    META_FILE_PATH,
    META_INDEX_SESSION,
    META_SOURCE,
    SHUTDOWN_TASK_TIMEOUT,
)
from rag_index_kit.embeddings.base import EmbeddingError, EmbeddingProvider
from rag_index_kit.exceptions import IndexingError, IndexManagerError, ServiceError
from rag_index_kit.indexing.chunker import BoundaryChunker
from rag_index_kit.indexing.ignore import IgnoreMatcher
from rag_index_kit.indexing.languages import detect_language
from rag_index_kit.indexing.watcher import FileEvent, FileWatcher, discover_files
from rag_index_kit.store.config import ChromaDbConfig
from rag_index_kit.store.filters import MetadataFilter, NotEqual
from rag_index_kit.store.manager import IndexManager
from rag_index_kit.store.models import Chunk, IndexedItem, IndexStatus, QueryResult

logger = logging.getLogger(__name__)


class ServiceState(StrEnum):
    """Sync service lifecycle states."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    INITIAL_DISCOVERY = "initial_discovery"
    INITIAL_PROCESSING = "initial_processing"
    WATCHING = "watching"
    PROCESSING_CHANGES = "processing_changes"
    STOPPING = "stopping"


@dataclass
class ServiceStatus:
    """Read-only snapshot returned by get_service_status()."""

    state: ServiceState
    initialized: bool
    initial_scan_complete: bool
    watching: bool
    files_in_queue: int
    processed_files: int
    total_files_initial_scan: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "initialized": self.initialized,
            "initial_scan_complete": self.initial_scan_complete,
            "watching": self.watching,
            "files_in_queue": self.files_in_queue,
            "processed_files": self.processed_files,
            "total_files_initial_scan": self.total_files_initial_scan,
        }


@dataclass
class ReconcilePlan:
    """Work computed by comparing discovered files with stored file states."""

    to_index: list[str] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)


def reconcile(discovered: dict[str, float | None], stored: dict[str, float]) -> ReconcilePlan:
    """Compute the minimal reindex/delete work after startup discovery.

    Args:
        discovered: ``relative path -> on-disk mtime`` (None if stat failed).
        stored: ``relative path -> newest recorded mtime`` from the store.

    Returns:
        Files to (re)index, in discovery order, and stored paths to delete.
    """
    plan = ReconcilePlan()
    for path, mtime in discovered.items():
        recorded = stored.get(path)
        if mtime is None or recorded is None or mtime > recorded:
            plan.to_index.append(path)
    plan.to_delete = [path for path in stored if path not in discovered]
    return plan


@dataclass
class FileIndexResult:
    """Outcome of indexing one file."""

    relative_path: str
    chunks: int = 0
    upserted: int = 0
    failed_batches: int = 0
    deleted: bool = False
    item_ids: list[str] = field(default_factory=list)


def _batched(chunks: list[Chunk], size: int) -> Iterator[list[Chunk]]:
    for start in range(0, len(chunks), size):
        yield chunks[start : start + size]


class RagIndexService:
    """Keeps a vector index consistent with a watched workspace.

    Attributes:
        config: Service configuration.
        workspace_root: Absolute root of the watched tree.
    """

    def __init__(
        self,
        config: RagServiceConfig,
        workspace_root: Path,
        embedding_provider: EmbeddingProvider | None = None,
        index_manager: IndexManager | None = None,
    ):
        """Create the service. Nothing is opened until initialize().

        Args:
            config: Service configuration.
            workspace_root: Root directory to index.
            embedding_provider: Pre-built provider (built from config otherwise).
            index_manager: Pre-built manager (built from config otherwise).
        """
        self.config = config
        self.workspace_root = workspace_root.resolve()
        self._embedding_provider = embedding_provider
        self._index_manager = index_manager
        self._chunker = BoundaryChunker(config.chunking)
        self._matcher = IgnoreMatcher(config.exclude_patterns, config.include_patterns)

        self._state = ServiceState.IDLE
        self._initialized = False
        self._initial_scan_complete = False
        self._processed_files = 0
        self._total_files_initial_scan = 0
        self._initial_remaining = 0

        self._watcher: FileWatcher | None = None
        self._queue: asyncio.Queue[str | None] | None = None
        self._queued: set[str] = set()
        self._consumer: asyncio.Task[None] | None = None
        self._debounce: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._processing_lock = asyncio.Lock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def index_manager(self) -> IndexManager:
        """The initialized IndexManager.

        Raises:
            ServiceError: If the service has not been initialized.
        """
        if not self._initialized or self._index_manager is None:
            raise ServiceError("RagIndexService is not initialized", state=self._state.value)
        return self._index_manager

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if not self._initialized or self._embedding_provider is None:
            raise ServiceError("RagIndexService is not initialized", state=self._state.value)
        return self._embedding_provider

    @property
    def matcher(self) -> IgnoreMatcher:
        return self._matcher

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ServiceError("RagIndexService is not initialized", state=self._state.value)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Build the embedding provider, IndexManager and ignore rules.

        Raises:
            ConfigurationError: Invalid embedding or vector_db configuration.
            EmbeddingError: The embedding provider reports it cannot serve requests.
            IndexManagerError: The vector store could not be opened.
        """
        if self._initialized:
            logger.warning("RagIndexService already initialized")
            return

        logger.info(f"Initializing RagIndexService for {self.workspace_root}")
        self._state = ServiceState.INITIALIZING
        try:
            if self._embedding_provider is None:
                from rag_index_kit.embeddings.factory import create_provider_from_config

                self._embedding_provider = create_provider_from_config(self.config.embedding)
            await self._check_embedding_provider()
            if self._index_manager is None:
                self._index_manager = await IndexManager.create(
                    self.config.vector_db, self._embedding_provider
                )
            elif not self._index_manager.is_initialized():
                await self._index_manager.initialize(self._embedding_provider)
        except Exception:
            self._state = ServiceState.IDLE
            raise

        self._matcher = await asyncio.to_thread(
            IgnoreMatcher.for_project,
            self.workspace_root,
            self.config.exclude_patterns,
            self.config.include_patterns,
            self.config.respect_gitignore,
        )
        self._exclude_vector_db_path()

        self._initialized = True
        self._state = ServiceState.IDLE
        logger.info(
            f"RagIndexService initialized (vector_db={self._index_manager.provider}, "
            f"embedding={self._embedding_provider.name})"
        )

    async def _check_embedding_provider(self) -> None:
        provider = self._embedding_provider
        available, reason = await asyncio.to_thread(provider.check_availability)
        if not available:
            raise EmbeddingError(
                f"Embedding provider unavailable: {reason}", provider=provider.name
            )

    def _exclude_vector_db_path(self) -> None:
        vector_db = self.config.vector_db
        if not isinstance(vector_db, ChromaDbConfig) or not vector_db.path:
            return
        db_path = (self.workspace_root / vector_db.path).resolve()
        if db_path.is_relative_to(self.workspace_root) and db_path != self.workspace_root:
            relative = db_path.relative_to(self.workspace_root).as_posix()
            self._matcher.add_exclude(relative)
            self._matcher.add_exclude(f"{relative}/**")
            logger.info(f"Ignoring vector DB path: {relative}")

    async def start_watching(self) -> None:
        """Run startup reconciliation and begin watching for changes.

        Raises:
            ServiceError: If the service is not initialized or the stored
                file states could not be fetched.
        """
        self._require_initialized()
        if not self.config.auto_watch_enabled:
            logger.info("Auto-watching is disabled in configuration")
            return
        if self._watcher is not None:
            logger.warning("Watcher already running")
            return

        loop = asyncio.get_running_loop()
        self._state = ServiceState.INITIAL_DISCOVERY
        self._initial_scan_complete = False
        self._queue = asyncio.Queue()
        self._queued.clear()

        watcher = FileWatcher(
            project_root=self.workspace_root,
            matcher=self._matcher,
            on_event=self._handle_file_event,
            loop=loop,
            write_stability_delay=self.config.write_stability_delay,
        )
        started = await loop.run_in_executor(None, watcher.start)
        if not started:
            self._state = ServiceState.IDLE
            raise ServiceError("File watcher could not be started", state=self._state.value)
        self._watcher = watcher

        try:
            discovered = await asyncio.to_thread(self._stat_discovered, watcher.discover())
            logger.info(f"Initial discovery found {len(discovered)} files")

            try:
                stored = await self.index_manager.get_all_file_states()
            except IndexManagerError as e:
                raise ServiceError(
                    f"Could not load stored file states: {e}",
                    state=self._state.value,
                    cause=e,
                ) from e
        except BaseException:
            watcher.cancel_pending()
            await asyncio.to_thread(watcher.stop)
            self._watcher = None
            self._state = ServiceState.IDLE
            raise

        plan = reconcile(discovered, stored)
        logger.info(
            f"Reconciliation: {len(plan.to_index)} to index, "
            f"{len(plan.to_delete)} to delete, "
            f"{len(discovered) - len(plan.to_index)} unchanged"
        )

        self._state = ServiceState.INITIAL_PROCESSING
        self._total_files_initial_scan = len(plan.to_index)
        self._initial_remaining = 0
        for relative_path in plan.to_index:
            if self._enqueue(relative_path):
                self._initial_remaining += 1
        for relative_path in plan.to_delete:
            self._spawn(self.delete_file_index(relative_path), name=f"delete:{relative_path}")

        self._consumer = asyncio.create_task(
            self._consume_queue(self._queue), name="rag_index_consumer"
        )
        self._initial_scan_complete = True
        if self._initial_remaining == 0:
            self._state = ServiceState.WATCHING
        logger.info("Initial scan complete, watching for changes")

    async def stop_watching(self) -> None:
        """Stop the watcher and the queue consumer.

        Pending debounced events and queued-but-unstarted files are dropped.
        A file already being indexed is allowed to finish.
        """
        if self._watcher is None and self._consumer is None:
            return

        logger.info("Stopping file watcher...")
        self._state = ServiceState.STOPPING

        for handle in self._debounce.values():
            handle.cancel()
        self._debounce.clear()

        if self._watcher is not None:
            self._watcher.cancel_pending()
            await asyncio.to_thread(self._watcher.stop)
            self._watcher = None

        if self._queue is not None and self._consumer is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
                self._queue.task_done()
            self._queued.clear()
            self._queue.put_nowait(None)
            try:
                await asyncio.wait_for(self._consumer, timeout=SHUTDOWN_TASK_TIMEOUT)
            except TimeoutError:
                logger.warning(
                    f"Queue consumer did not finish within {SHUTDOWN_TASK_TIMEOUT}s, cancelling"
                )
                self._consumer.cancel()
        self._consumer = None
        self._queue = None

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._state = ServiceState.IDLE
        logger.info("File watcher stopped")

    async def close(self) -> None:
        """Stop watching and release the embedding provider's resources."""
        await self.stop_watching()
        if self._embedding_provider is not None:
            self._embedding_provider.close()

    def get_service_status(self) -> ServiceStatus:
        """Snapshot of the service state."""
        return ServiceStatus(
            state=self._state,
            initialized=self._initialized,
            initial_scan_complete=self._initial_scan_complete,
            watching=self._watcher is not None and self._watcher.is_running,
            files_in_queue=self._queue.qsize() if self._queue is not None else 0,
            processed_files=self._processed_files,
            total_files_initial_scan=self._total_files_initial_scan,
        )

    async def wait_until_idle(self) -> None:
        """Wait for the queue to drain and spawned deletions to finish."""
        if self._queue is not None:
            await self._queue.join()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Events, debounce and queue
    # =========================================================================

    def _relative_path(self, path: Path | str) -> str:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        try:
            return candidate.resolve().relative_to(self.workspace_root).as_posix()
        except ValueError:
            return candidate.relative_to(self.workspace_root).as_posix()

    def _handle_file_event(self, event: FileEvent, path: Path) -> None:
        """Route a watcher event. Runs on the loop thread."""
        if self._state == ServiceState.STOPPING:
            return
        try:
            relative_path = self._relative_path(path)
        except ValueError:
            logger.debug(f"Ignoring event outside workspace: {path}")
            return

        logger.debug(f"File event: {event} - {relative_path}")
        if event in (FileEvent.ADD, FileEvent.CHANGE):
            self._schedule_debounced(relative_path)
        elif event == FileEvent.UNLINK:
            self._cancel_debounced(relative_path)
            self._spawn(self.delete_file_index(relative_path), name=f"delete:{relative_path}")
        elif event == FileEvent.UNLINK_DIR:
            prefix = f"{relative_path}/"
            for pending in [p for p in self._debounce if p.startswith(prefix)]:
                self._cancel_debounced(pending)
            self._spawn(self.delete_directory_index(relative_path), name=f"rmdir:{relative_path}")

    def _schedule_debounced(self, relative_path: str) -> None:
        """Queue a file after a quiet period, resetting the timer on every event."""
        self._cancel_debounced(relative_path)
        loop = asyncio.get_running_loop()
        self._debounce[relative_path] = loop.call_later(
            self.config.debounce_delay, self._on_debounce_fired, relative_path
        )

    def _cancel_debounced(self, relative_path: str) -> None:
        handle = self._debounce.pop(relative_path, None)
        if handle is not None:
            handle.cancel()

    def _on_debounce_fired(self, relative_path: str) -> None:
        self._debounce.pop(relative_path, None)
        if self._state != ServiceState.STOPPING:
            self._enqueue(relative_path)

    def _enqueue(self, relative_path: str) -> bool:
        if self._queue is None or relative_path in self._queued:
            return False
        self._queued.add(relative_path)
        self._queue.put_nowait(relative_path)
        return True

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _consume_queue(self, queue: asyncio.Queue[str | None]) -> None:
        """Index queued files one at a time until a stop sentinel arrives."""
        while True:
            relative_path = await queue.get()
            try:
                if relative_path is None:
                    return
                self._queued.discard(relative_path)
                if self._state == ServiceState.WATCHING:
                    self._state = ServiceState.PROCESSING_CHANGES
                await self.index_single_file(relative_path)
                self._processed_files += 1
            except Exception:
                logger.error(f"Unexpected failure indexing {relative_path}", exc_info=True)
            finally:
                queue.task_done()
                self._after_queue_item()

    def _after_queue_item(self) -> None:
        if self._state == ServiceState.STOPPING:
            return
        if self._state == ServiceState.INITIAL_PROCESSING:
            self._initial_remaining -= 1
            if self._initial_remaining <= 0:
                self._state = ServiceState.WATCHING
                stats = self._chunker.get_stats()
                logger.info(
                    f"Initial processing complete: {self._processed_files} files "
                    f"({stats['syntax']} syntax-chunked, {stats['fallback']} window-split)"
                )
        elif self._state == ServiceState.PROCESSING_CHANGES and self._queue is not None:
            if self._queue.empty():
                self._state = ServiceState.WATCHING

    # =========================================================================
    # Indexing
    # =========================================================================

    def _stat_discovered(self, files: list[Path]) -> dict[str, float | None]:
        discovered: dict[str, float | None] = {}
        for path in files:
            relative_path = path.relative_to(self.workspace_root).as_posix()
            try:
                discovered[relative_path] = path.stat().st_mtime
            except OSError as e:
                logger.debug(f"Could not stat {relative_path}: {e}")
                discovered[relative_path] = None
        return discovered

    @staticmethod
    def _read_file(path: Path) -> tuple[str, float]:
        mtime = path.stat().st_mtime
        return path.read_text(encoding="utf-8"), mtime

    async def index_single_file(self, path: Path | str) -> FileIndexResult:
        """Chunk, embed and upsert one file.

        A file that no longer exists has its entries deleted. A failing
        embedding or upsert batch is logged and skipped.

        Args:
            path: Absolute or workspace-relative path.

        Returns:
            What happened to the file.
        """
        self._require_initialized()
        async with self._processing_lock:
            return await self._index_file_unlocked(self._relative_path(path))

    async def _index_file_unlocked(self, relative_path: str) -> FileIndexResult:
        result = FileIndexResult(relative_path=relative_path)
        absolute_path = self.workspace_root / relative_path
        logger.debug(f"Indexing file: {relative_path}")

        try:
            content, mtime = await asyncio.to_thread(self._read_file, absolute_path)
        except FileNotFoundError:
            logger.info(f"File {relative_path} not found during indexing, removing its entries")
            await self.delete_file_index(relative_path)
            result.deleted = True
            return result
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {relative_path}: {e}")
            return result

        language = detect_language(relative_path)
        try:
            chunks = await asyncio.to_thread(
                self._chunker.chunk, content, language, {META_FILE_PATH: relative_path}
            )
        except Exception as e:
            logger.error(f"Chunking failed for {relative_path}: {e}")
            return result

        result.chunks = len(chunks)
        if not chunks:
            logger.info(f"No chunks generated for {relative_path}, removing existing entries")
            await self.delete_file_index(relative_path)
            result.deleted = True
            return result

        session = uuid.uuid4().hex
        extra = {META_FILE_PATH: relative_path, META_FILE_MTIME: mtime, META_INDEX_SESSION: session}
        batch_size = self.config.embedding.batch_size
        total_batches = (len(chunks) + batch_size - 1) // batch_size

        for batch_number, batch in enumerate(_batched(chunks, batch_size), start=1):
            prefix = f"[{relative_path} batch {batch_number}/{total_batches}]"
            try:
                items = await self._embed_chunks(relative_path, batch, extra)
                await self.index_manager.upsert_items(items)
            except Exception as e:
                result.failed_batches += 1
                logger.error(f"{prefix} skipped: {e}")
                continue
            result.upserted += len(items)
            result.item_ids.extend(item.id for item in items)

        if result.upserted:
            await self._delete_previous_sessions(relative_path, session)

        logger.info(
            f"Indexed {relative_path}: {result.upserted}/{result.chunks} chunks"
            + (f", {result.failed_batches} failed batches" if result.failed_batches else "")
        )
        return result

    async def _embed_chunks(
        self,
        relative_path: str,
        chunks: list[Chunk],
        extra_metadata: dict[str, Any],
    ) -> list[IndexedItem]:
        embedding = await asyncio.to_thread(
            self.embedding_provider.embed, [chunk.content for chunk in chunks]
        )
        vectors = embedding.embeddings
        if len(vectors) != len(chunks):
            raise IndexingError(
                f"Embedding count mismatch: expected {len(chunks)}, got {len(vectors)}",
                file_path=relative_path,
            )

        items = []
        for position, (chunk, vector) in enumerate(zip(chunks, vectors, strict=True)):
            chunk_index = chunk.chunk_index if chunk.chunk_index is not None else position
            items.append(
                chunk.to_indexed_item(
                    IndexedItem.make_id(relative_path, chunk_index), vector, extra_metadata
                )
            )
        return items

    async def _delete_previous_sessions(self, relative_path: str, session: str) -> None:
        """Remove chunks left over from an earlier, longer version of the file."""
        try:
            await self.index_manager.delete_where(
                {META_FILE_PATH: relative_path, META_INDEX_SESSION: NotEqual(session)}
            )
        except IndexManagerError as e:
            logger.warning(f"Could not remove stale chunks for {relative_path}: {e}")

    async def delete_file_index(self, relative_path: str) -> None:
        """Remove every stored chunk of a file."""
        self._require_initialized()
        logger.info(f"Deleting index entries for file: {relative_path}")
        try:
            await self.index_manager.delete_where({META_FILE_PATH: relative_path})
        except IndexManagerError as e:
            logger.error(f"Error deleting index entries for {relative_path}: {e}")

    async def delete_directory_index(self, relative_dir: str) -> None:
        """Remove stored chunks of every file under a deleted directory."""
        prefix = f"{relative_dir.rstrip('/')}/"
        try:
            states = await self.index_manager.get_all_file_states()
        except IndexManagerError as e:
            logger.error(f"Could not list files under {relative_dir}: {e}")
            return
        for relative_path in states:
            if relative_path.startswith(prefix):
                await self.delete_file_index(relative_path)

    # =========================================================================
    # Manual operations
    # =========================================================================

    async def sync_workspace_index(self) -> dict[str, int]:
        """Re-index every file and delete items not produced by this pass.

        Returns:
            Counts of files, upserted items and deleted stale items.
        """
        self._require_initialized()
        async with self._processing_lock:
            files = await asyncio.to_thread(discover_files, self.workspace_root, self._matcher)
            logger.info(f"Starting workspace sync: {len(files)} files")

            generated_ids: set[str] = set()
            upserted = 0
            for path in files:
                relative_path = path.relative_to(self.workspace_root).as_posix()
                result = await self._index_file_unlocked(relative_path)
                generated_ids.update(result.item_ids)
                upserted += result.upserted

            existing = await self.index_manager.get_all_ids()
            stale = [item_id for item_id in existing if item_id not in generated_ids]
            if stale:
                logger.info(f"Deleting {len(stale)} stale items")
                await self.index_manager.delete_items(stale)

        logger.info(f"Workspace sync complete: {upserted} items from {len(files)} files")
        return {"files": len(files), "upserted": upserted, "deleted": len(stale)}

    async def index_file(self, path: Path | str) -> FileIndexResult:
        """Index one file on demand, honoring ignore rules.

        Raises:
            IndexingError: If the path is outside the workspace or ignored.
        """
        self._require_initialized()
        try:
            relative_path = self._relative_path(path)
        except ValueError as e:
            raise IndexingError("Path is outside the workspace", file_path=str(path)) from e
        if self._matcher.is_ignored(PurePosixPath(relative_path)):
            raise IndexingError("Path is excluded by ignore rules", file_path=relative_path)
        return await self.index_single_file(relative_path)

    async def index_content(
        self,
        content: str,
        source: str,
        language: str | None = None,
    ) -> int:
        """Index ad-hoc text under a synthetic source id.

        Unlike file indexing, failures are raised to the caller.

        Returns:
            Number of stored chunks.

        Raises:
            IndexingError: If embedding fails.
            IndexManagerError: If the upsert fails.
        """
        self._require_initialized()
        async with self._processing_lock:
            chunks = await asyncio.to_thread(
                self._chunker.chunk,
                content,
                language,
                {META_FILE_PATH: source, META_SOURCE: source},
            )
            if not chunks:
                return 0
            extra = {META_FILE_PATH: source, META_INDEX_SESSION: uuid.uuid4().hex}
            stored = 0
            for batch in _batched(chunks, self.config.embedding.batch_size):
                try:
                    items = await self._embed_chunks(source, batch, extra)
                except IndexingError:
                    raise
                except Exception as e:
                    raise IndexingError(f"Embedding failed: {e}", file_path=source) from e
                await self.index_manager.upsert_items(items)
                stored += len(items)
            await self._delete_previous_sessions(source, extra[META_INDEX_SESSION])
            return stored

    async def query(
        self,
        text: str,
        top_k: int = DEFAULT_QUERY_TOP_K,
        filter: MetadataFilter | None = None,
    ) -> list[QueryResult]:
        """Embed a query and return the most similar chunks."""
        self._require_initialized()
        vector = await asyncio.to_thread(self.embedding_provider.embed_query, text)
        return await self.index_manager.query_index(vector, top_k, filter)

    async def get_chunks_for_file(self, path: Path | str) -> list[dict[str, Any]]:
        """Stored chunk metadata for a file, ordered by chunk index."""
        self._require_initialized()
        return await self.index_manager.get_chunks_metadata_by_file_path(self._relative_path(path))

    async def get_index_status(self) -> IndexStatus:
        """Item count and collection name of the underlying store."""
        self._require_initialized()
        return await self.index_manager.get_status()
