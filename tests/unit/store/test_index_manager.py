"""Tests for the IndexManager facade."""

from unittest.mock import MagicMock

import pytest

from rag_index_kit.exceptions import ConfigurationError, IndexManagerError, NotInitializedError
from rag_index_kit.store.base import VectorStoreBackend
from rag_index_kit.store.config import ChromaDbConfig, InMemoryConfig
from rag_index_kit.store.manager import IndexManager
from rag_index_kit.store.models import IndexedItem


def _item(item_id: str, **metadata) -> IndexedItem:
    return IndexedItem(id=item_id, content=item_id, vector=[1.0, 0.0], metadata=metadata)


@pytest.fixture
async def manager() -> IndexManager:
    return await IndexManager.create(InMemoryConfig())


class TestCreate:
    """Test construction and initialization."""

    @pytest.mark.anyio
    async def test_operations_before_initialize(self):
        manager = IndexManager({"provider": "in-memory"})

        assert not manager.is_initialized()
        with pytest.raises(NotInitializedError, match="IndexManager not initialized"):
            await manager.get_all_ids()

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            IndexManager({"provider": "faiss"})

    @pytest.mark.anyio
    async def test_chroma_requires_embedding_provider(self):
        with pytest.raises(ConfigurationError):
            await IndexManager.create(ChromaDbConfig())

    @pytest.mark.anyio
    async def test_backend_open_failure_is_wrapped(self, monkeypatch):
        def fail(config, embedding_provider):
            raise RuntimeError("disk full")

        monkeypatch.setattr("rag_index_kit.store.chroma_store.ChromaBackend", fail)

        with pytest.raises(IndexManagerError) as exc_info:
            await IndexManager.create(ChromaDbConfig(), embedding_provider=MagicMock())

        assert exc_info.value.message == "IndexManager initialization failed: disk full"


class TestOperations:
    """Test operations against the in-memory backend."""

    @pytest.mark.anyio
    async def test_upsert_and_query(self, manager):
        await manager.upsert_items([_item("a"), _item("b")])
        await manager.upsert_items([])

        results = await manager.query_index([1.0, 0.0], top_k=1)

        assert len(results) == 1
        assert await manager.query_index([1.0, 0.0], top_k=0) == []

    @pytest.mark.anyio
    async def test_delete_where_refuses_empty_filter(self, manager):
        await manager.upsert_items([_item("a", file_path="a")])

        assert await manager.delete_where({}) == 0
        assert await manager.get_all_ids() == ["a"]

    @pytest.mark.anyio
    async def test_chunks_metadata_sorted_by_index(self, manager):
        await manager.upsert_items(
            [
                _item("a::2", file_path="a", chunk_index=2),
                _item("a::0", file_path="a", chunk_index=0),
                _item("b::0", file_path="b", chunk_index=0),
                _item("a::1", file_path="a", chunk_index=1),
            ]
        )

        chunks = await manager.get_chunks_metadata_by_file_path("a")

        assert [c["id"] for c in chunks] == ["a::0", "a::1", "a::2"]

    @pytest.mark.anyio
    async def test_file_states_keep_newest_mtime(self, manager):
        await manager.upsert_items(
            [
                _item("a::0", file_path="a.ts", file_mtime=1000),
                _item("a::1", file_path="a.ts", file_mtime=1500.5),
                _item("b::0", file_path="b.ts", file_mtime=500),
                _item("bad::0", file_path="bad.ts", file_mtime="yesterday"),
                _item("flag::0", file_path="flag.ts", file_mtime=True),
                _item("loose::0"),
            ]
        )

        assert await manager.get_all_file_states() == {"a.ts": 1500.5, "b.ts": 500.0}

    @pytest.mark.anyio
    async def test_status(self, manager):
        await manager.upsert_items([_item("a")])

        status = await manager.get_status()

        assert status.to_dict() == {"count": 1, "name": "in-memory-store"}


class TestErrorWrapping:
    """Test that backend failures name the operation."""

    @pytest.fixture
    def failing(self, manager):
        backend = MagicMock(spec=VectorStoreBackend)
        backend.blocking = True
        backend.provider = "fake"
        operations = (
            "upsert",
            "query",
            "delete",
            "delete_where",
            "get_all_ids",
            "list_metadata",
            "status",
        )
        for name in operations:
            getattr(backend, name).side_effect = RuntimeError("connection reset")
        manager._backend = backend
        return manager

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "call,label",
        [
            (lambda m: m.upsert_items([_item("a")]), "Upsert"),
            (lambda m: m.query_index([1.0]), "Query"),
            (lambda m: m.delete_items(["a"]), "Delete"),
            (lambda m: m.delete_where({"file_path": "a"}), "delete_where"),
            (lambda m: m.get_all_ids(), "get_all_ids"),
            (lambda m: m.get_chunks_metadata_by_file_path("a"), "get_chunks_metadata_by_file_path"),
            (lambda m: m.get_all_file_states(), "get_all_file_states"),
            (lambda m: m.get_status(), "get_status"),
        ],
    )
    async def test_operation_label(self, failing, call, label):
        with pytest.raises(IndexManagerError) as exc_info:
            await call(failing)

        assert exc_info.value.operation == label
        assert exc_info.value.message == f"{label} failed: connection reset"
        assert exc_info.value.provider == "fake"
