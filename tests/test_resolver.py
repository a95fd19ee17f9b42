"""Tests for the cache-aside Resolver."""

import asyncio

import pytest

from tunestream.core.connectors import InMemoryCache
from tunestream.core.errors import LocatorError, ResolutionError
from tunestream.core.interfaces import ProcessResult
from tunestream.modules.streaming import Resolver, SingleFlight, SongMetadata, StreamDescriptor

from tests.fakes import SOURCE_URL, FailingStore, FakeRunner, failed_result, locator_result, metadata_result


def make_resolver(store=None, runner=None, **kwargs) -> Resolver:
    return Resolver(store or InMemoryCache(), runner or FakeRunner(), **kwargs)


@pytest.mark.unit
class TestResolveMetadata:
    """Tests for Resolver.resolve_metadata()."""

    @pytest.mark.asyncio
    async def test_miss_invokes_tool_and_caches(self):
        """Cache-aside on miss.

        ЧТО ПРОВЕРЯЕМ:
            First call runs yt-dlp and writes song:<normalized>, second call hits
        """
        store = InMemoryCache()
        runner = FakeRunner()
        resolver = make_resolver(store, runner)

        first = await resolver.resolve_metadata("Shape of You")
        second = await resolver.resolve_metadata("  shape OF you ")

        assert first == SongMetadata(title="Shape of You", duration_seconds=233, artist="Ed Sheeran")
        assert second == first
        assert runner.count("metadata") == 1
        assert resolver.invocations["metadata"] == 1
        assert await store.get("song:shape of you") == {
            "title": "Shape of You",
            "durationSeconds": 233,
            "artist": "Ed Sheeran",
        }

    @pytest.mark.asyncio
    async def test_hit_skips_tool(self):
        store = InMemoryCache()
        await store.set("song:hello", {"title": "Hello", "durationSeconds": 295, "artist": "Adele"}, ttl=60)
        runner = FakeRunner()

        metadata = await make_resolver(store, runner).resolve_metadata("Hello")

        assert metadata.title == "Hello"
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_uses_metadata_ttl(self):
        store = InMemoryCache()
        resolver = make_resolver(store, metadata_ttl=5)
        await resolver.resolve_metadata("x")

        store._clock = lambda: 10**12
        assert await store.get("song:x") is None

    @pytest.mark.asyncio
    async def test_malformed_cached_value_is_a_miss(self):
        store = InMemoryCache()
        await store.set("song:hello", {"unexpected": True}, ttl=60)
        runner = FakeRunner()

        metadata = await make_resolver(store, runner).resolve_metadata("hello")

        assert metadata.title == "Shape of You"
        assert runner.count("metadata") == 1

    @pytest.mark.asyncio
    async def test_store_unavailable_degrades_to_miss(self):
        runner = FakeRunner()
        resolver = make_resolver(FailingStore(), runner)

        metadata = await resolver.resolve_metadata("Shape of You")
        again = await resolver.resolve_metadata("Shape of You")

        assert metadata == again
        assert runner.count("metadata") == 2

    @pytest.mark.asyncio
    async def test_tool_failure(self):
        resolver = make_resolver(runner=FakeRunner(metadata=failed_result("ERROR: no results")))

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve_metadata("zzzz")

        assert "no results" in exc_info.value.data["stderr"]

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        store = InMemoryCache()
        resolver = make_resolver(store, FakeRunner(metadata=failed_result()))

        with pytest.raises(ResolutionError):
            await resolver.resolve_metadata("zzzz")
        assert await store.size() == 0

    @pytest.mark.parametrize("stdout", ["", "not json\n", "[1, 2]\n", '{"duration": 10}\n', '{"title": "  "}\n'])
    @pytest.mark.asyncio
    async def test_unparsable_output(self, stdout):
        resolver = make_resolver(runner=FakeRunner(metadata=ProcessResult(returncode=0, stdout=stdout)))

        with pytest.raises(ResolutionError):
            await resolver.resolve_metadata("anything")

    @pytest.mark.parametrize("duration", ["Infinity", "-Infinity", "NaN", '"1e999"'])
    @pytest.mark.asyncio
    async def test_non_finite_duration(self, duration):
        """yt-dlp JSON may carry non-finite numbers.

        ЧТО ПРОВЕРЯЕМ:
            The title still resolves and the duration falls back to 0
        """
        result = ProcessResult(returncode=0, stdout=f'{{"title": "X", "duration": {duration}}}\n')
        metadata = await make_resolver(runner=FakeRunner(metadata=result)).resolve_metadata("x")

        assert metadata == SongMetadata(title="X", duration_seconds=0, artist="")

    @pytest.mark.asyncio
    async def test_non_finite_cached_duration(self):
        store = InMemoryCache()
        await store.set("song:x", {"title": "X", "durationSeconds": float("inf"), "artist": ""}, ttl=60)
        runner = FakeRunner()

        metadata = await make_resolver(store, runner).resolve_metadata("x")

        assert metadata.duration_seconds == 0
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_duration_string_fallback(self):
        result = ProcessResult(returncode=0, stdout='{"title": "T", "duration_string": "3:54", "uploader": "U"}\n')
        metadata = await make_resolver(runner=FakeRunner(metadata=result)).resolve_metadata("t")

        assert metadata.duration_seconds == 234
        assert metadata.artist == "U"

    @pytest.mark.asyncio
    async def test_timeout(self):
        resolver = make_resolver(runner=FakeRunner(delay=5), timeout=0.1)

        with pytest.raises(ResolutionError) as exc_info:
            await resolver.resolve_metadata("slow")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        resolver = make_resolver(runner=FakeRunner(metadata=FileNotFoundError("yt-dlp")))

        with pytest.raises(ResolutionError):
            await resolver.resolve_metadata("x")


@pytest.mark.unit
class TestResolveStreamLocator:
    """Tests for Resolver.resolve_stream_locator()."""

    @pytest.mark.asyncio
    async def test_miss_invokes_tool_and_caches(self):
        store = InMemoryCache()
        runner = FakeRunner()
        resolver = make_resolver(store, runner)

        descriptor = await resolver.resolve_stream_locator("Shape of You")
        await resolver.resolve_stream_locator("shape of you")

        assert descriptor == StreamDescriptor(source_url=SOURCE_URL)
        assert runner.count("locator") == 1
        assert await store.get("stream:shape of you") == {"sourceURL": SOURCE_URL}

    @pytest.mark.asyncio
    async def test_independent_of_metadata(self):
        store = InMemoryCache()
        runner = FakeRunner()
        resolver = make_resolver(store, runner)

        await resolver.resolve_metadata("hello")
        await resolver.resolve_stream_locator("hello")

        assert runner.count("metadata") == 1
        assert runner.count("locator") == 1
        assert sorted(await store.keys_with_prefix("")) == ["song:hello", "stream:hello"]

    @pytest.mark.asyncio
    async def test_first_url_line_used(self):
        result = ProcessResult(returncode=0, stdout=f"\n{SOURCE_URL}\nhttps://second.example/b\n")
        descriptor = await make_resolver(runner=FakeRunner(locator=result)).resolve_stream_locator("x")

        assert descriptor.source_url == SOURCE_URL

    @pytest.mark.parametrize("result", [
        failed_result(),
        ProcessResult(returncode=0, stdout=""),
        locator_result("file:///etc/passwd"),
        locator_result("not a url"),
    ])
    @pytest.mark.asyncio
    async def test_locator_errors(self, result):
        store = InMemoryCache()
        resolver = make_resolver(store, FakeRunner(locator=result))

        with pytest.raises(LocatorError):
            await resolver.resolve_stream_locator("x")
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_locator_error_is_a_resolution_error(self):
        resolver = make_resolver(runner=FakeRunner(locator=failed_result()))

        with pytest.raises(ResolutionError):
            await resolver.resolve_stream_locator("x")


@pytest.mark.unit
class TestConcurrentResolution:
    """Concurrent identical uncached queries."""

    @pytest.mark.asyncio
    async def test_duplicate_invocations_by_default(self):
        """No coalescing unless enabled.

        ЧТО ПРОВЕРЯЕМ:
            Two racing requests for the same uncached query both run yt-dlp
        """
        runner = FakeRunner(delay=0.1)
        resolver = make_resolver(runner=runner)

        first, second = await asyncio.gather(
            resolver.resolve_metadata("Same Song"),
            resolver.resolve_metadata("same song"),
        )

        assert first == second
        assert runner.count("metadata") == 2

    @pytest.mark.asyncio
    async def test_single_flight_coalesces(self):
        runner = FakeRunner(delay=0.1)
        resolver = make_resolver(runner=runner, single_flight=True)

        results = await asyncio.gather(*(resolver.resolve_metadata("Same Song") for _ in range(5)))

        assert all(r == results[0] for r in results)
        assert runner.count("metadata") == 1
        assert resolver.single_flight is True

    @pytest.mark.asyncio
    async def test_single_flight_shares_failures(self):
        runner = FakeRunner(locator=failed_result(), delay=0.1)
        resolver = make_resolver(runner=runner, single_flight=True)

        results = await asyncio.gather(
            resolver.resolve_stream_locator("x"),
            resolver.resolve_stream_locator("x"),
            return_exceptions=True,
        )

        assert all(isinstance(r, LocatorError) for r in results)
        assert runner.count("locator") == 1


@pytest.mark.unit
class TestSingleFlight:
    """Tests for SingleFlight."""

    @pytest.mark.asyncio
    async def test_key_forgotten_after_completion(self):
        flight = SingleFlight()
        calls = []

        async def work():
            calls.append(1)
            await asyncio.sleep(0.01)
            return len(calls)

        assert await flight.do("k", work) == 1
        assert len(flight) == 0
        assert await flight.do("k", work) == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_others(self):
        flight = SingleFlight()

        async def work():
            await asyncio.sleep(0.1)
            return "done"

        first = asyncio.ensure_future(flight.do("k", work))
        second = asyncio.ensure_future(flight.do("k", work))
        await asyncio.sleep(0.01)
        first.cancel()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first
