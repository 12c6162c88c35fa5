import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from knowledge_engine.modules.knowledge.locks import KeyedLockRegistry
from knowledge_engine.modules.knowledge.vector.base import SearchResult, VectorIndexConfig, VectorRecord
from knowledge_engine.modules.knowledge.vector.memory import InMemoryVectorIndex
from knowledge_engine.modules.knowledge.vector.qdrant import QdrantVectorIndex


def _record(record_id, vector, agent_id="a1", knowledge_id="k1", **metadata):
    return VectorRecord(id=record_id, vector=vector, content=record_id,
                        agent_id=agent_id, knowledge_id=knowledge_id, metadata=metadata)


@pytest.fixture
def index():
    return InMemoryVectorIndex()


@pytest.mark.asyncio
async def test_search_orders_by_similarity(index):
    await index.add([
        _record("near", [1.0, 0.1]),
        _record("far", [0.0, 1.0]),
        _record("middle", [1.0, 1.0]),
    ])

    results = await index.search([1.0, 0.0], limit=2)

    assert [r.id for r in results] == ["near", "middle"]
    assert results[0].score > results[1].score


@pytest.mark.asyncio
async def test_search_filters_by_owner(index):
    await index.add([
        _record("mine", [1.0, 0.0]),
        _record("other-agent", [1.0, 0.0], agent_id="a2"),
        _record("other-source", [1.0, 0.0], knowledge_id="k2"),
    ])

    results = await index.search([1.0, 0.0], limit=5, filter_dict={"agent_id": "a1", "knowledge_id": "k1"})

    assert [r.id for r in results] == ["mine"]


@pytest.mark.asyncio
async def test_search_ignores_other_dimensions(index):
    await index.add([_record("small", [1.0, 0.0]), _record("large", [1.0, 0.0, 0.0])])

    results = await index.search([1.0, 0.0, 0.0], limit=5)

    assert [r.id for r in results] == ["large"]


@pytest.mark.asyncio
async def test_add_replaces_existing_record(index):
    await index.add([_record("c1", [1.0, 0.0])])
    await index.add([_record("c1", [0.0, 1.0])])

    results = await index.search([0.0, 1.0], limit=1)

    assert len(index) == 1
    assert results[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_delete_where(index):
    await index.add([_record("a", [1.0]), _record("b", [1.0], knowledge_id="k2"), _record("c", [1.0], agent_id="a2")])

    assert await index.delete_where({"agent_id": "a1"}) is True

    assert "a" not in index and "b" not in index
    assert "c" in index


def test_score_derived_from_distance():
    assert SearchResult(id="x", content="", metadata={}, distance=0.0).score == 1.0
    assert SearchResult(id="x", content="", metadata={}, distance=1.0).score == pytest.approx(0.5)


def test_config_rejects_unknown_metric():
    with pytest.raises(ValueError):
        VectorIndexConfig(distance_metric="manhattan")


def test_config_builds_index_by_type():
    index = VectorIndexConfig(type="memory", collection_prefix="chunks").get()

    assert isinstance(index, InMemoryVectorIndex)
    assert index.collection_name(768) == "chunks_768"


@pytest.mark.asyncio
async def test_lock_registry_serializes_same_key():
    locks = KeyedLockRegistry()
    trace = []

    async def worker(name):
        async with locks.acquire("k"):
            trace.append(f"{name}-in")
            await asyncio.sleep(0)
            trace.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert trace == ["a-in", "a-out", "b-in", "b-out"]
    assert locks.get("k") is locks.get("k")
    assert len(locks) == 1


@pytest.mark.asyncio
async def test_discard_keeps_held_lock():
    locks = KeyedLockRegistry()

    async with locks.acquire("held"):
        assert locks.discard("held") is False
    assert locks.discard("held") is True
    assert locks.discard("missing") is False
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_deleted_knowledge_source_drops_its_order_lock(allocator, agent_id, knowledge_id):
    async with allocator.reserve(agent_id, knowledge_id) as start:
        assert start == 1
    assert len(allocator.locks) == 1

    allocator.release(knowledge_id)

    assert len(allocator.locks) == 0


def _qdrant_index(distance_metric="cosine"):
    index = QdrantVectorIndex(VectorIndexConfig(
        type="qdrant", collection_prefix="test_chunks", distance_metric=distance_metric, dimensions=[2, 3]))
    index.client = AsyncQdrantClient(location=":memory:")
    return index


@pytest_asyncio.fixture
async def qdrant_index():
    index = _qdrant_index()
    yield index
    await index.close()


@pytest.mark.asyncio
async def test_qdrant_keeps_one_collection_per_dimension(qdrant_index):
    small, large = str(uuid4()), str(uuid4())

    assert await qdrant_index.add([_record(small, [1.0, 0.0]), _record(large, [1.0, 0.0, 0.0])]) is True

    assert await qdrant_index.client.collection_exists("test_chunks_2")
    assert await qdrant_index.client.collection_exists("test_chunks_3")
    results = await qdrant_index.search([1.0, 0.0, 0.0], limit=5)
    assert [r.id for r in results] == [large]


@pytest.mark.asyncio
async def test_qdrant_search_applies_owner_filter(qdrant_index):
    mine, other_agent, other_source = str(uuid4()), str(uuid4()), str(uuid4())
    await qdrant_index.add([
        _record(mine, [1.0, 0.0], page=4),
        _record(other_agent, [1.0, 0.0], agent_id="a2"),
        _record(other_source, [1.0, 0.0], knowledge_id="k2"),
    ])

    results = await qdrant_index.search(
        [1.0, 0.0], limit=5, filter_dict={"agent_id": "a1", "knowledge_id": "k1"})

    assert [r.id for r in results] == [mine]
    assert results[0].score == pytest.approx(1.0)
    assert results[0].metadata == {"page": 4, "agent_id": "a1", "knowledge_id": "k1"}


@pytest.mark.asyncio
async def test_qdrant_delete_by_id_across_collections(qdrant_index):
    small, large, kept = str(uuid4()), str(uuid4()), str(uuid4())
    await qdrant_index.add([
        _record(small, [1.0, 0.0]), _record(large, [1.0, 0.0, 0.0]), _record(kept, [0.0, 1.0]),
    ])

    assert await qdrant_index.delete([small, large]) is True

    assert [r.id for r in await qdrant_index.search([1.0, 0.0], limit=5)] == [kept]
    assert await qdrant_index.search([1.0, 0.0, 0.0], limit=5) == []


@pytest.mark.asyncio
async def test_qdrant_delete_where(qdrant_index):
    gone, other_source, other_agent = str(uuid4()), str(uuid4()), str(uuid4())
    await qdrant_index.add([
        _record(gone, [1.0, 0.0]),
        _record(other_source, [1.0, 0.0, 0.0], knowledge_id="k2"),
        _record(other_agent, [1.0, 0.0], agent_id="a2"),
    ])

    assert await qdrant_index.delete_where({"agent_id": "a1"}) is True

    assert [r.id for r in await qdrant_index.search([1.0, 0.0], limit=5)] == [other_agent]
    assert await qdrant_index.search([1.0, 0.0, 0.0], limit=5) == []


@pytest.mark.asyncio
async def test_qdrant_search_missing_collection(qdrant_index):
    assert await qdrant_index.search([1.0, 0.0], limit=5) == []


@pytest.mark.asyncio
async def test_qdrant_euclidean_score_from_distance():
    index = _qdrant_index("euclidean")
    exact, far = str(uuid4()), str(uuid4())
    await index.add([_record(exact, [1.0, 0.0]), _record(far, [4.0, 4.0])])

    results = await index.search([1.0, 0.0], limit=2)
    await index.close()

    assert [r.id for r in results] == [exact, far]
    assert results[0].score == pytest.approx(1.0)
    assert results[1].distance == pytest.approx(5.0)
    assert results[1].score == pytest.approx(1.0 / 6.0)
