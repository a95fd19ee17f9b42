"""Tests for the transcode pipeline with a Python process standing in for ffmpeg."""

import asyncio

import pytest

from tunestream.core.errors import TranscodeError
from tunestream.modules.streaming import TranscodePipeline

from tests.fakes import (
    AUDIO_BYTES,
    AUDIO_SCRIPT,
    ENDLESS_SCRIPT,
    NO_OUTPUT_SCRIPT,
    PARTIAL_SCRIPT,
    SILENT_SCRIPT,
    SOURCE_URL,
    FakeRunner,
)


def make_pipeline(script: str, **kwargs):
    runner = FakeRunner(transcode_script=script)
    pipeline = TranscodePipeline(runner, chunk_size=4096, kill_grace=kwargs.pop("kill_grace", 1.0), **kwargs)
    return pipeline, runner


async def collect(stream) -> bytes:
    body = b""
    async for chunk in stream:
        body += chunk
    return body


@pytest.mark.integration
class TestTranscodePipeline:
    """Tests for TranscodePipeline and TranscodeStream."""

    @pytest.mark.asyncio
    async def test_streams_until_eof(self):
        """Normal completion.

        ЧТО ПРОВЕРЯЕМ:
            All output is yielded, the first chunk exactly once, and the
            process is reaped without a signal
        """
        pipeline, runner = make_pipeline(AUDIO_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)
        first = await stream.read_first_chunk()

        body = await collect(stream)

        assert body.startswith(first)
        assert body == AUDIO_BYTES
        assert stream.bytes_sent == len(AUDIO_BYTES)
        assert stream.terminated_by is None
        assert not stream.running
        assert pipeline.spawn_count == 1
        assert pipeline.active_count == 0

    @pytest.mark.asyncio
    async def test_transcoder_receives_source_url(self):
        pipeline, runner = make_pipeline(SILENT_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)
        await stream.terminate()

        args = runner.spawned_commands[0].args
        assert args[args.index("-i") + 1] == SOURCE_URL

    @pytest.mark.asyncio
    async def test_invalid_url_never_spawns(self):
        pipeline, runner = make_pipeline(SILENT_SCRIPT)

        with pytest.raises(TranscodeError):
            await pipeline.open("file:///etc/passwd")

        assert pipeline.spawn_count == 0
        assert runner.spawned == []

    @pytest.mark.asyncio
    async def test_exit_without_output(self):
        pipeline, runner = make_pipeline(NO_OUTPUT_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)

        with pytest.raises(TranscodeError) as exc_info:
            await stream.read_first_chunk()

        assert exc_info.value.data["returncode"] == 1
        assert "Invalid data" in exc_info.value.data["stderr"]
        assert pipeline.active_count == 0

    @pytest.mark.asyncio
    async def test_start_deadline(self):
        pipeline, runner = make_pipeline(SILENT_SCRIPT, start_timeout=0.3)
        stream = await pipeline.open(SOURCE_URL)

        with pytest.raises(TranscodeError):
            await stream.read_first_chunk()

        assert runner.spawned[0].returncode is not None
        assert stream.terminated_by == "term"

    @pytest.mark.asyncio
    async def test_abnormal_exit_after_output(self):
        pipeline, runner = make_pipeline(PARTIAL_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)
        await stream.read_first_chunk()

        with pytest.raises(TranscodeError) as exc_info:
            await collect(stream)

        assert exc_info.value.data["returncode"] == 3
        assert stream.bytes_sent > 0

    @pytest.mark.asyncio
    async def test_terminate_stops_running_process(self):
        """Cancellation path.

        ЧТО ПРОВЕРЯЕМ:
            terminate() ends an endless transcoder and is idempotent
        """
        pipeline, runner = make_pipeline(ENDLESS_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)
        await stream.read_first_chunk()

        await asyncio.wait_for(stream.terminate(), timeout=5)
        await stream.terminate()

        assert runner.spawned[0].returncode is not None
        assert stream.terminated_by == "term"
        assert pipeline.active_count == 0

    @pytest.mark.asyncio
    async def test_consumer_cancellation_terminates(self):
        pipeline, runner = make_pipeline(ENDLESS_SCRIPT)
        stream = await pipeline.open(SOURCE_URL)
        await stream.read_first_chunk()

        async def consume():
            async for _ in stream:
                pass

        task = asyncio.ensure_future(consume())
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.wait_for(stream.terminate(), timeout=5)
        assert runner.spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_terminate_all(self):
        pipeline, runner = make_pipeline(ENDLESS_SCRIPT)
        streams = [await pipeline.open(SOURCE_URL) for _ in range(3)]
        assert pipeline.active_count == 3

        await asyncio.wait_for(pipeline.terminate_all(), timeout=10)

        assert pipeline.active_count == 0
        assert all(not s.running for s in streams)
