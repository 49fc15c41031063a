"""Tests for the incremental sync service."""

import asyncio
import threading
import time
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_index_kit.config import ChunkingOptions, RagServiceConfig
from rag_index_kit.embeddings.base import EmbeddingError
from rag_index_kit.embeddings.mock import MockEmbeddingProvider
from rag_index_kit.exceptions import IndexingError, IndexManagerError, ServiceError
from rag_index_kit.indexing.service import RagIndexService, ServiceState, reconcile
from rag_index_kit.indexing.watcher import FileEvent, FileWatcher
from rag_index_kit.store.config import ChromaDbConfig, InMemoryConfig
from rag_index_kit.store.manager import IndexManager
from rag_index_kit.store.models import IndexedItem

THREE_FUNCTIONS = """def parse_config(path):
    with open(path) as handle:
        return yaml.safe_load(handle) or {}


def connect_database(url, timeout=30):
    engine = create_engine(url, pool_timeout=timeout)
    return engine.connect()


def render_report(rows):
    lines = [format_row(row) for row in rows]
    return " ".join(lines)
"""


class FlakyProvider(MockEmbeddingProvider):
    """Fails the first embed call, then behaves."""

    def __init__(self) -> None:
        super().__init__(dimensions=64)
        self.calls = 0

    def embed(self, texts):
        self.calls += 1
        if self.calls == 1:
            raise EmbeddingError("model overloaded", provider=self.name)
        return super().embed(texts)


class UnavailableProvider(MockEmbeddingProvider):
    """Reports that its backing server is unreachable."""

    def check_availability(self):
        return False, "server down"


class SlowProvider(MockEmbeddingProvider):
    """Records how many embed calls run at the same time."""

    def __init__(self) -> None:
        super().__init__(dimensions=64)
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def embed(self, texts):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(0.05)
            return super().embed(texts)
        finally:
            with self._lock:
                self.active -= 1


def _item(provider, item_id: str, file_path: str, mtime: float, session: str = "seed"):
    return IndexedItem(
        id=item_id,
        content=f"content of {file_path}",
        vector=provider.embed([f"content of {file_path}"]).embeddings[0],
        metadata={
            "file_path": file_path,
            "file_mtime": mtime,
            "chunk_index": int(item_id.rsplit("::", 1)[1]),
            "index_session": session,
        },
    )


@pytest.fixture
def no_observer(monkeypatch):
    """Replace the watchdog observer so only injected events reach the service."""

    def start(self):
        self._running = True
        return True

    monkeypatch.setattr(FileWatcher, "start", start)


@pytest.fixture
async def service(service_config, workspace, mock_provider):
    svc = RagIndexService(service_config, workspace, embedding_provider=mock_provider)
    await svc.initialize()
    yield svc
    await svc.close()


class TestReconcile:
    """Test the startup reconciliation plan."""

    def test_unchanged_file_not_scheduled(self):
        plan = reconcile({"a.ts": 1000.0}, {"a.ts": 1000.0})

        assert plan.to_index == []
        assert plan.to_delete == []

    def test_newer_file_scheduled(self):
        assert reconcile({"a.ts": 2000.0}, {"a.ts": 1000.0}).to_index == ["a.ts"]

    def test_older_file_not_scheduled(self):
        assert reconcile({"a.ts": 900.0}, {"a.ts": 1000.0}).to_index == []

    def test_vanished_file_deleted(self):
        plan = reconcile({"a.ts": 1000.0}, {"a.ts": 1000.0, "b.ts": 500.0})

        assert plan.to_delete == ["b.ts"]

    def test_new_and_unstattable_files_scheduled(self):
        plan = reconcile({"new.ts": 10.0, "locked.ts": None}, {"locked.ts": 10.0})

        assert plan.to_index == ["new.ts", "locked.ts"]


class TestIndexSingleFile:
    """Test per-file indexing."""

    @pytest.mark.anyio
    async def test_three_functions_end_to_end(self, service_config, workspace, mock_provider):
        pytest.importorskip("tree_sitter")
        pytest.importorskip("tree_sitter_python")
        config = replace(
            service_config, chunking=ChunkingOptions(max_chunk_size=150, chunk_overlap=0)
        )
        assert len(THREE_FUNCTIONS) > 150
        (workspace / "tools.py").write_text(THREE_FUNCTIONS)
        service = RagIndexService(config, workspace, embedding_provider=mock_provider)
        await service.initialize()

        result = await service.index_single_file("tools.py")

        assert result.chunks == 3
        assert result.upserted == 3
        chunks = await service.get_chunks_for_file("tools.py")
        assert [(c["start_line"], c["end_line"]) for c in chunks] == [(1, 3), (6, 8), (11, 13)]
        assert [c["id"] for c in chunks] == ["tools.py::0", "tools.py::1", "tools.py::2"]

        function_two = THREE_FUNCTIONS.split("\n\n\n")[1]
        results = await service.query(function_two, top_k=3)
        assert results[0].item.id == "tools.py::1"
        assert results[0].item.content == function_two
        assert results[0].score == pytest.approx(1.0)

    @pytest.mark.anyio
    async def test_batch_failure_isolation(self, service_config, workspace):
        config = replace(
            service_config,
            chunking=ChunkingOptions(max_chunk_size=20, chunk_overlap=0),
            embedding=replace(service_config.embedding, batch_size=1),
        )
        (workspace / "notes.txt").write_text("a" * 20 + "b" * 20)
        service = RagIndexService(config, workspace, embedding_provider=FlakyProvider())
        await service.initialize()

        result = await service.index_single_file("notes.txt")

        assert result.chunks == 2
        assert result.failed_batches == 1
        assert result.upserted == 1
        assert await service.index_manager.get_all_ids() == ["notes.txt::1"]

    @pytest.mark.anyio
    async def test_metadata_carries_file_state(self, service, workspace):
        path = workspace / "readme.txt"
        path.write_text("hello world")

        await service.index_single_file(path)

        chunks = await service.get_chunks_for_file("readme.txt")
        assert chunks[0]["file_path"] == "readme.txt"
        assert chunks[0]["file_mtime"] == path.stat().st_mtime
        assert chunks[0]["index_session"]

    @pytest.mark.anyio
    async def test_missing_file_deletes_entries(self, service, mock_provider):
        await service.index_manager.upsert_items(
            [_item(mock_provider, "gone.txt::0", "gone.txt", 1.0)]
        )

        result = await service.index_single_file("gone.txt")

        assert result.deleted
        assert await service.index_manager.get_all_ids() == []

    @pytest.mark.anyio
    async def test_empty_file_deletes_entries(self, service, workspace, mock_provider):
        await service.index_manager.upsert_items(
            [_item(mock_provider, "e.txt::0", "e.txt", 1.0)]
        )
        (workspace / "e.txt").write_text("")

        result = await service.index_single_file("e.txt")

        assert result.deleted
        assert await service.index_manager.get_all_ids() == []

    @pytest.mark.anyio
    async def test_shrinking_file_drops_trailing_chunks(self, service_config, workspace):
        config = replace(
            service_config, chunking=ChunkingOptions(max_chunk_size=10, chunk_overlap=0)
        )
        service = RagIndexService(config, workspace, embedding_provider=MockEmbeddingProvider(64))
        await service.initialize()
        path = workspace / "log.txt"

        path.write_text("x" * 30)
        await service.index_single_file("log.txt")
        assert len(await service.get_chunks_for_file("log.txt")) == 3

        path.write_text("short")
        await service.index_single_file("log.txt")

        chunks = await service.get_chunks_for_file("log.txt")
        assert [c["id"] for c in chunks] == ["log.txt::0"]

    @pytest.mark.anyio
    async def test_undecodable_file_is_skipped(self, service, workspace):
        (workspace / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")

        result = await service.index_single_file("blob.bin")

        assert result.upserted == 0
        assert not result.deleted

    @pytest.mark.anyio
    async def test_upsert_failure_is_logged_not_raised(
        self, service_config, workspace, mock_provider
    ):
        manager = MagicMock(spec=IndexManager)
        manager.is_initialized.return_value = True
        manager.provider = "in-memory"
        manager.upsert_items = AsyncMock(
            side_effect=IndexManagerError("Upsert", RuntimeError("full"))
        )
        manager.delete_where = AsyncMock(return_value=0)
        (workspace / "a.txt").write_text("content")
        service = RagIndexService(
            service_config, workspace, embedding_provider=mock_provider, index_manager=manager
        )
        await service.initialize()

        result = await service.index_single_file("a.txt")

        assert result.failed_batches == 1
        manager.delete_where.assert_not_awaited()


class TestLifecycle:
    """Test initialization, reconciliation and watching."""

    @pytest.mark.anyio
    async def test_operations_require_initialize(self, service_config, workspace):
        service = RagIndexService(service_config, workspace)

        with pytest.raises(ServiceError):
            await service.query("anything")

    def test_properties_require_initialize(self, service_config, workspace, mock_provider):
        service = RagIndexService(service_config, workspace, embedding_provider=mock_provider)

        with pytest.raises(ServiceError):
            service.index_manager
        with pytest.raises(ServiceError):
            service.embedding_provider

    @pytest.mark.anyio
    async def test_unavailable_embedding_provider_is_fatal(self, service_config, workspace):
        manager = MagicMock(spec=IndexManager)
        manager.is_initialized.return_value = False
        manager.initialize = AsyncMock()
        service = RagIndexService(
            service_config,
            workspace,
            embedding_provider=UnavailableProvider(),
            index_manager=manager,
        )

        with pytest.raises(EmbeddingError, match="server down"):
            await service.initialize()
        manager.initialize.assert_not_awaited()
        assert service.state == ServiceState.IDLE
        assert not service.get_service_status().initialized

    @pytest.mark.anyio
    async def test_initialize_failure_is_fatal(self, service_config, workspace, mock_provider):
        manager = MagicMock(spec=IndexManager)
        manager.is_initialized.return_value = False
        manager.initialize = AsyncMock(
            side_effect=IndexManagerError("IndexManager initialization", RuntimeError("no db"))
        )
        service = RagIndexService(
            service_config, workspace, embedding_provider=mock_provider, index_manager=manager
        )

        with pytest.raises(IndexManagerError):
            await service.initialize()
        assert service.state == ServiceState.IDLE
        assert not service.get_service_status().initialized

    @pytest.mark.anyio
    async def test_initialize_builds_provider_from_config(self, service_config, workspace):
        service = RagIndexService(service_config, workspace)

        await service.initialize()

        assert service.embedding_provider.name == "mock:64"
        assert service.index_manager.provider == "in-memory"

    @pytest.mark.anyio
    async def test_chroma_path_inside_workspace_is_ignored(self, service_config, workspace):
        config = replace(service_config, vector_db=ChromaDbConfig(path="vectors"))
        manager = await IndexManager.create(InMemoryConfig())
        service = RagIndexService(
            config, workspace, embedding_provider=MockEmbeddingProvider(64), index_manager=manager
        )

        await service.initialize()

        assert service.matcher.is_ignored("vectors/chroma.sqlite3")

    @pytest.mark.anyio
    async def test_startup_reconciliation(self, service, workspace, mock_provider):
        (workspace / "a.txt").write_text("unchanged file")
        (workspace / "c.txt").write_text("brand new file")
        a_mtime = (workspace / "a.txt").stat().st_mtime
        await service.index_manager.upsert_items(
            [
                _item(mock_provider, "a.txt::0", "a.txt", a_mtime, session="original"),
                _item(mock_provider, "b.txt::0", "b.txt", 500.0),
            ]
        )

        await service.start_watching()
        await service.wait_until_idle()

        ids = sorted(await service.index_manager.get_all_ids())
        assert ids == ["a.txt::0", "c.txt::0"]
        a_chunks = await service.get_chunks_for_file("a.txt")
        assert a_chunks[0]["index_session"] == "original"

        status = service.get_service_status()
        assert status.state == ServiceState.WATCHING
        assert status.initial_scan_complete
        assert status.total_files_initial_scan == 1
        assert status.processed_files == 1
        assert status.to_dict()["state"] == "watching"

        await service.stop_watching()
        assert service.state == ServiceState.IDLE
        assert not service.get_service_status().watching

    @pytest.mark.anyio
    async def test_file_state_failure_stops_startup(self, service_config, workspace, mock_provider):
        manager = MagicMock(spec=IndexManager)
        manager.is_initialized.return_value = True
        manager.provider = "in-memory"
        manager.get_all_file_states = AsyncMock(
            side_effect=IndexManagerError("get_all_file_states", RuntimeError("timeout"))
        )
        service = RagIndexService(
            service_config, workspace, embedding_provider=mock_provider, index_manager=manager
        )
        await service.initialize()

        with pytest.raises(ServiceError):
            await service.start_watching()

        status = service.get_service_status()
        assert status.state == ServiceState.IDLE
        assert not status.watching

    @pytest.mark.anyio
    async def test_auto_watch_disabled(self, service_config, workspace, mock_provider):
        config = replace(service_config, auto_watch_enabled=False)
        service = RagIndexService(config, workspace, embedding_provider=mock_provider)
        await service.initialize()

        await service.start_watching()

        assert service.state == ServiceState.IDLE
        assert not service.get_service_status().watching

    @pytest.mark.anyio
    async def test_change_and_unlink_events(self, service, workspace, no_observer):
        await service.start_watching()
        path = workspace / "live.txt"
        path.write_text("first version")

        service._handle_file_event(FileEvent.CHANGE, path)
        await asyncio.sleep(0.05)
        await service.wait_until_idle()
        assert [c["id"] for c in await service.get_chunks_for_file("live.txt")] == ["live.txt::0"]

        path.unlink()
        service._handle_file_event(FileEvent.UNLINK, path)
        await service.wait_until_idle()
        assert await service.get_chunks_for_file("live.txt") == []

    @pytest.mark.anyio
    async def test_unlink_cancels_pending_debounce(
        self, service_config, workspace, mock_provider, no_observer
    ):
        config = replace(service_config, debounce_delay=10.0)
        service = RagIndexService(config, workspace, embedding_provider=mock_provider)
        await service.initialize()
        await service.start_watching()
        path = workspace / "temp.txt"

        service._handle_file_event(FileEvent.ADD, path)
        service._handle_file_event(FileEvent.UNLINK, path)
        await service.wait_until_idle()

        assert service._debounce == {}
        await service.close()

    @pytest.mark.anyio
    async def test_unlink_dir_removes_files_below(
        self, service, workspace, mock_provider, no_observer
    ):
        (workspace / "pkgs.txt").write_text("keep me")
        await service.start_watching()
        await service.wait_until_idle()
        await service.index_manager.upsert_items(
            [
                _item(mock_provider, "pkg/a.txt::0", "pkg/a.txt", 1.0),
                _item(mock_provider, "pkg/sub/b.txt::0", "pkg/sub/b.txt", 1.0),
            ]
        )

        service._handle_file_event(FileEvent.UNLINK_DIR, workspace / "pkg")
        await service.wait_until_idle()

        assert await service.index_manager.get_all_ids() == ["pkgs.txt::0"]

    @pytest.mark.anyio
    async def test_stop_is_idempotent(self, service):
        await service.stop_watching()
        await service.start_watching()
        await service.stop_watching()
        await service.stop_watching()

        assert service.state == ServiceState.IDLE


class TestSerialization:
    """Test debounce coalescing and one-file-at-a-time processing."""

    @pytest.mark.anyio
    async def test_rapid_changes_coalesce_into_one_pass(
        self, service_config, workspace, mock_provider, no_observer, monkeypatch
    ):
        config = replace(service_config, debounce_delay=0.2)
        service = RagIndexService(config, workspace, embedding_provider=mock_provider)
        await service.initialize()
        await service.start_watching()
        await service.wait_until_idle()

        passes = []
        index_single_file = service.index_single_file

        async def recording(path):
            passes.append(path)
            return await index_single_file(path)

        monkeypatch.setattr(service, "index_single_file", recording)
        path = workspace / "x.txt"
        for version in range(4):
            path.write_text(f"version {version}")
            service._handle_file_event(FileEvent.CHANGE, path)
            await asyncio.sleep(0.03)

        assert passes == []
        await asyncio.sleep(0.4)
        await service.wait_until_idle()

        assert passes == ["x.txt"]
        chunks = await service.get_chunks_for_file("x.txt")
        assert len(chunks) == 1
        await service.close()

    @pytest.mark.anyio
    async def test_indexing_passes_never_overlap(self, service_config, workspace, no_observer):
        for name in ("a.txt", "b.txt", "c.txt"):
            (workspace / name).write_text(f"contents of {name}")
        provider = SlowProvider()
        service = RagIndexService(service_config, workspace, embedding_provider=provider)
        await service.initialize()

        await service.start_watching()
        await asyncio.gather(service.index_single_file("c.txt"), service.wait_until_idle())

        assert provider.calls >= 3
        assert provider.max_active == 1
        assert sorted(await service.index_manager.get_all_ids()) == [
            "a.txt::0",
            "b.txt::0",
            "c.txt::0",
        ]
        await service.close()


class TestManualOperations:
    """Test on-demand indexing and querying."""

    @pytest.mark.anyio
    async def test_sync_workspace_removes_stale_items(self, service, workspace, mock_provider):
        (workspace / "a.txt").write_text("alpha")
        (workspace / "b.txt").write_text("beta")
        await service.index_manager.upsert_items(
            [_item(mock_provider, "old.txt::0", "old.txt", 1.0)]
        )

        result = await service.sync_workspace_index()

        assert result == {"files": 2, "upserted": 2, "deleted": 1}
        assert sorted(await service.index_manager.get_all_ids()) == ["a.txt::0", "b.txt::0"]

    @pytest.mark.anyio
    async def test_index_file_rejects_ignored_paths(self, service, workspace):
        (workspace / "node_modules").mkdir()
        (workspace / "node_modules" / "lib.js").write_text("x")

        with pytest.raises(IndexingError):
            await service.index_file(workspace / "node_modules" / "lib.js")

    @pytest.mark.anyio
    async def test_index_content_and_query(self, service):
        stored = await service.index_content("kubernetes deployment rollout", source="notes://ops")
        await service.index_content("banana bread recipe", source="notes://kitchen")

        results = await service.query("kubernetes rollout", top_k=1)

        assert stored == 1
        assert results[0].item.file_path == "notes://ops"
        assert results[0].item.metadata["source"] == "notes://ops"

    @pytest.mark.anyio
    async def test_index_content_raises_embedding_errors(self, service_config, workspace):
        service = RagIndexService(service_config, workspace, embedding_provider=FlakyProvider())
        await service.initialize()

        with pytest.raises(IndexingError):
            await service.index_content("text", source="notes://x")

    @pytest.mark.anyio
    async def test_query_with_filter(self, service, workspace):
        (workspace / "a.txt").write_text("shared words here")
        (workspace / "b.txt").write_text("shared words here")
        await service.sync_workspace_index()

        results = await service.query("shared words", filter={"file_path": "b.txt"})

        assert [r.item.id for r in results] == ["b.txt::0"]

    @pytest.mark.anyio
    async def test_index_status(self, service, workspace):
        (workspace / "a.txt").write_text("alpha")
        await service.index_file("a.txt")

        status = await service.get_index_status()

        assert status.count == 1
        assert status.name == "in-memory-store"


def test_default_config_is_valid():
    assert RagServiceConfig().vector_db.provider == "in-memory"
