"""Tests for the read-through snapshot index."""

import asyncio
import json
import tempfile
from pathlib import Path

from ksynth.models import EmbeddingVector
from ksynth.storage import get_vector_index
from ksynth.storage.snapshot import Snapshot, SnapshotVectorIndex, VaultEmbeddingsLoader, safe_id


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingLoader:
    def __init__(self, vectors=None, delay=0.0):
        self.calls = 0
        self.vectors = vectors or {"a": [1.0, 0.0]}
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return Snapshot(
            vectors={k: EmbeddingVector(id=k, path=f"{k}.md", vector=v) for k, v in self.vectors.items()},
            model="test-model",
        )


def _write_snapshot(root: Path, notes: dict, folder="embeddings"):
    root.mkdir(parents=True, exist_ok=True)
    index = {"version": 1, "model": "text-embedding-3-small", "dimensions": 2,
             "notes": {doc_id: {"path": info["path"]} for doc_id, info in notes.items()}}
    (root / "index.json").write_text(json.dumps(index))
    (root / folder).mkdir(exist_ok=True)
    for doc_id, info in notes.items():
        if "vector" in info:
            (root / folder / f"{safe_id(doc_id)}.json").write_text(json.dumps({"vector": info["vector"]}))


def test_safe_id():
    assert safe_id("My Note (draft).v2") == "My_Note__draft__v2"
    assert safe_id("plain-id_1") == "plain-id_1"


def test_loader_reads_index_and_vectors():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir) / "09_Embedded"
        _write_snapshot(root, {
            "alpha": {"path": "notes/alpha.md", "vector": [1.0, 0.0]},
            "My Note": {"path": "notes/My Note.md", "vector": [0.0, 1.0]},
            "missing-file": {"path": "notes/missing.md"},
        })
        (root / "embeddings" / "broken.json").write_text("{not json")

        snapshot = asyncio.run(VaultEmbeddingsLoader(root)())
        assert snapshot.model == "text-embedding-3-small"
        assert sorted(snapshot.vectors) == ["My Note", "alpha"]
        assert snapshot.vectors["My Note"].path == "notes/My Note.md"


def test_loader_missing_index_gives_empty_snapshot():
    with tempfile.TemporaryDirectory() as tmpdir:
        snapshot = asyncio.run(VaultEmbeddingsLoader(Path(tmpdir) / "nothing")())
        assert snapshot.vectors == {}


def test_index_reloads_only_after_ttl():
    clock = FakeClock()
    loader = CountingLoader()
    index = SnapshotVectorIndex(loader, ttl_seconds=60, clock=clock)

    async def scenario():
        await index.ensure_fresh()
        await index.ensure_fresh()
        clock.now += 30
        await index.ensure_fresh()
        assert loader.calls == 1
        clock.now += 31
        await index.ensure_fresh()
        assert loader.calls == 2

    asyncio.run(scenario())
    assert index.model == "test-model"
    assert index.size() == 1


def test_concurrent_stale_checks_share_one_reload():
    loader = CountingLoader(delay=0.01)
    index = SnapshotVectorIndex(loader, ttl_seconds=60, clock=FakeClock())

    async def scenario():
        await asyncio.gather(*(index.ensure_fresh() for _ in range(10)))

    asyncio.run(scenario())
    assert loader.calls == 1
    assert index.reload_count == 1


def test_refresh_forces_reload():
    loader = CountingLoader()
    index = SnapshotVectorIndex(loader, clock=FakeClock())

    async def scenario():
        await index.ensure_fresh()
        await index.refresh()

    asyncio.run(scenario())
    assert loader.calls == 2


def test_writes_are_ignored():
    index = SnapshotVectorIndex(CountingLoader(), clock=FakeClock())
    asyncio.run(index.ensure_fresh())

    index.store(EmbeddingVector(id="b", path="b.md", vector=[0.0, 1.0]))
    index.remove("a")
    index.clear()

    assert index.read_only
    assert index.stored_ids() == ["a"]
    assert [r.id for r in index.search([1.0, 0.0])] == ["a"]


def test_factory_builds_snapshot_index():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write_snapshot(Path(tmpdir) / "09_Embedded", {"alpha": {"path": "alpha.md", "vector": [1.0, 0.0]}})
        index = get_vector_index({
            "vault_path": tmpdir,
            "vector_index": {"backend": "snapshot", "snapshot_path": "09_Embedded", "cache_ttl_seconds": 5},
        })
        asyncio.run(index.ensure_fresh())
        assert isinstance(index, SnapshotVectorIndex)
        assert index.get("alpha").vector == [1.0, 0.0]
