"""Tests for the content-addressable cache."""

import asyncio
import json

import pytest

from buildkit.cache import CACHE_VERSION, Cache, Storable, digest


class CountingStorable(Storable):
    """Writes `payload` into a file and counts generate calls."""

    def __init__(self, name: str, payload: bytes = b"data", fail: bool = False):
        self.name = name
        self.payload = payload
        self.fail = fail
        self.generated = 0

    def key(self):
        return {"name": self.name}

    async def generate(self, cache, store):
        self.generated += 1
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("generation failed")
        (store / "out.bin").write_bytes(self.payload)
        return "out.bin"

    async def adapt(self, store, metadata):
        path = store / metadata
        if not path.exists():
            raise FileNotFoundError(path)
        return path


class OtherStorable(CountingStorable):
    pass


@pytest.fixture
def cache(tmp_path):
    return Cache(tmp_path / "cache")


class TestDigest:
    def test_is_unpadded_base64url_of_sha224(self):
        code = digest(CountingStorable("a"))
        # 28 digest bytes -> 38 base64 characters without padding
        assert len(code) == 38
        assert "=" not in code
        assert "/" not in code and "+" not in code

    def test_is_deterministic(self):
        assert digest(CountingStorable("a")) == digest(CountingStorable("a"))

    def test_depends_on_key_and_kind(self):
        assert digest(CountingStorable("a")) != digest(CountingStorable("b"))
        assert digest(CountingStorable("a")) != digest(OtherStorable("a"))

    def test_version_is_one(self):
        assert CACHE_VERSION == 1


class TestCacheGet:
    async def test_second_get_is_a_hit(self, cache):
        storable = CountingStorable("a")

        first = await cache.get(storable)
        second = await cache.get(storable)

        assert first == second
        assert first.read_bytes() == b"data"
        assert storable.generated == 1

    async def test_hit_survives_a_new_cache_instance(self, tmp_path):
        await Cache(tmp_path / "c").get(CountingStorable("a"))

        storable = CountingStorable("a")
        await Cache(tmp_path / "c").get(storable)

        assert storable.generated == 0

    async def test_distinct_keys_get_distinct_directories(self, cache):
        a = await cache.get(CountingStorable("a", b"A"))
        b = await cache.get(CountingStorable("b", b"B"))

        assert a.parent != b.parent
        assert a.read_bytes() == b"A"
        assert b.read_bytes() == b"B"

    async def test_marker_holds_key_and_metadata(self, cache):
        storable = CountingStorable("a")
        await cache.get(storable)

        marker = cache.root / f"{digest(storable)}.json"
        assert json.loads(marker.read_text()) == {"key": {"name": "a"}, "metadata": "out.bin"}

    async def test_failed_generation_leaves_no_marker(self, cache):
        failing = CountingStorable("a", fail=True)
        with pytest.raises(RuntimeError):
            await cache.get(failing)
        assert not (cache.root / f"{digest(failing)}.json").exists()

        retry = CountingStorable("a")
        path = await cache.get(retry)

        assert retry.generated == 1
        assert path.read_bytes() == b"data"

    async def test_leftover_directory_without_marker_is_regenerated(self, cache):
        storable = CountingStorable("a")
        leftover = cache.root / digest(storable)
        leftover.mkdir()
        (leftover / "partial").write_bytes(b"half")

        await cache.get(storable)

        assert storable.generated == 1
        assert not (leftover / "partial").exists()

    async def test_unreadable_marker_is_a_miss(self, cache):
        storable = CountingStorable("a")
        await cache.get(storable)
        (cache.root / f"{digest(storable)}.json").write_text("{not json")

        again = CountingStorable("a")
        await cache.get(again)

        assert again.generated == 1

    async def test_missing_payload_is_regenerated(self, cache):
        storable = CountingStorable("a")
        path = await cache.get(storable)
        path.unlink()

        again = CountingStorable("a")
        restored = await cache.get(again)

        assert again.generated == 1
        assert restored.read_bytes() == b"data"

    async def test_concurrent_gets_generate_once(self, cache):
        storable = CountingStorable("a")

        results = await asyncio.gather(*(cache.get(storable) for _ in range(5)))

        assert storable.generated == 1
        assert len(set(results)) == 1

    async def test_entry_locks_are_released_after_use(self, cache):
        first, second = CountingStorable("a"), CountingStorable("b")

        await asyncio.gather(*(cache.get(first) for _ in range(3)), cache.get(second))
        await cache.get(first)

        assert cache._locks == {}
        assert cache._waiters == {}
