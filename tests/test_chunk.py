"""Tests for the chunk state machine."""

import asyncio
import threading

import pytest

from common.types import ChunkStatus, PreprocessState
from conftest import settle
from uploader.chunk import InFlightRequest
from uploader.events import EventName
from uploader.exceptions import TransientTransportError
from uploader.items import BytesItem, PathItem


async def _single_file(uploader, size=100, name='data.bin'):
    result = await uploader.add_file(BytesItem(name, b'x' * size))
    return result.added[0]


class TestChunkStatus:
    """Status is derived from the chunk's attributes in a fixed precedence."""

    @pytest.mark.asyncio
    async def test_new_chunk_is_pending(self, make_uploader):
        upload_file = await _single_file(make_uploader(chunk_size=10))
        assert upload_file.chunks[0].status == ChunkStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_retry_wins_over_complete_flag(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.mark_complete = True
        chunk.pending_retry = True
        assert chunk.status == ChunkStatus.UPLOADING

    @pytest.mark.asyncio
    async def test_complete_flag_means_success(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.mark_complete = True
        assert chunk.status == ChunkStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_unresolved_request_is_uploading(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.request = InFlightRequest('send')
        assert chunk.status == ChunkStatus.UPLOADING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [200, 201])
    async def test_success_codes(self, make_uploader, status_code):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.request.resolve(status_code=status_code)
        assert chunk.status == ChunkStatus.SUCCESS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409, 415, 500, 501])
    async def test_permanent_codes_are_errors(self, make_uploader, status_code):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.request.resolve(status_code=status_code)
        assert chunk.status == ChunkStatus.ERROR

    @pytest.mark.asyncio
    async def test_transient_code_is_pending_until_retries_run_out(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10, max_chunk_retries=2))).chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.request.resolve(status_code=503)
        assert chunk.status == ChunkStatus.PENDING

        chunk.retries = 2
        assert chunk.status == ChunkStatus.ERROR

    @pytest.mark.asyncio
    async def test_permanent_transport_failure_is_error(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.request.resolve(permanent=True)
        assert chunk.status == ChunkStatus.ERROR


class TestChunkProgress:
    """Chunk progress reporting."""

    @pytest.mark.asyncio
    async def test_pending_chunk_reports_zero(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        assert chunk.progress() == 0.0

    @pytest.mark.asyncio
    async def test_in_flight_progress_is_damped(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.loaded = 5
        assert chunk.progress() == pytest.approx(0.5 * 0.95)

    @pytest.mark.asyncio
    async def test_relative_progress_scales_by_share_of_file(self, make_uploader):
        upload_file = await _single_file(make_uploader(chunk_size=25), size=100)
        chunk = upload_file.chunks[0]
        chunk.request = InFlightRequest('send')
        chunk.request.resolve(status_code=200)
        assert chunk.progress(relative=True) == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_pending_retry_forces_zero(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.mark_complete = True
        chunk.pending_retry = True
        assert chunk.progress() == 0.0

    @pytest.mark.asyncio
    async def test_forced_complete_is_not_damped(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.mark_complete = True
        assert chunk.progress() == 1.0


class TestChunkSend:
    """Probe, transmission and retry behaviour."""

    @pytest.mark.asyncio
    async def test_send_claims_chunk_synchronously(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.send()
        assert chunk.status == ChunkStatus.UPLOADING
        assert chunk.request is not None
        await settle()

    @pytest.mark.asyncio
    async def test_probe_hit_skips_transmission(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10, test_chunks=True)
        upload_file = await _single_file(uploader, size=10)
        fake_transport.existing.add((upload_file.unique_identifier, 1))

        upload_file.chunks[0].send()
        await settle()

        assert upload_file.chunks[0].status == ChunkStatus.SUCCESS
        assert upload_file.chunks[0].tested is True
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_probe_miss_transmits(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10, test_chunks=True)
        upload_file = await _single_file(uploader, size=10)

        upload_file.chunks[0].send()
        await settle()

        assert fake_transport.probed == [(upload_file.unique_identifier, 1)]
        assert len(fake_transport.sent) == 1
        assert upload_file.chunks[0].status == ChunkStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_probe_failure_falls_back_to_transmission(self, make_uploader, fake_transport):
        fake_transport.probe_error = True
        uploader = make_uploader(chunk_size=10, test_chunks=True)
        upload_file = await _single_file(uploader, size=10)

        upload_file.chunks[0].send()
        await settle()

        assert len(fake_transport.sent) == 1
        assert upload_file.chunks[0].status == ChunkStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_transmission_carries_chunk_fields(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10, query={'folder': 'inbox'})
        upload_file = await _single_file(uploader, size=25)

        upload_file.chunks[1].send()
        await settle()

        identifier, number, data = fake_transport.sent[0]
        meta = fake_transport.chunk_metas[0]
        assert (identifier, number) == (upload_file.unique_identifier, 2)
        assert data == b'x' * 15
        assert meta.total_chunks == 2
        assert meta.chunk_size == 10
        assert meta.current_chunk_size == 15
        assert meta.query == {'folder': 'inbox'}

    @pytest.mark.asyncio
    async def test_callable_query_receives_file_and_chunk(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10, query=lambda f, c: {'offset': c.offset})
        upload_file = await _single_file(uploader, size=20)

        upload_file.chunks[1].send()
        await settle()

        assert fake_transport.chunk_metas[0].query == {'offset': 1}

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, make_uploader, fake_transport):
        fake_transport.default_status = 503
        uploader = make_uploader(chunk_size=10, max_chunk_retries=3)
        upload_file = await _single_file(uploader, size=10)
        retries = []
        uploader.on(EventName.FILE_RETRY, retries.append)

        upload_file.chunks[0].send()
        await settle(50)

        chunk = upload_file.chunks[0]
        assert chunk.status == ChunkStatus.ERROR
        assert chunk.retries == 3
        assert len(fake_transport.sent) == 4
        assert len(retries) == 3
        assert upload_file.has_error

    @pytest.mark.asyncio
    async def test_permanent_status_is_not_retried(self, make_uploader, fake_transport):
        fake_transport.default_status = 415
        uploader = make_uploader(chunk_size=10)
        upload_file = await _single_file(uploader, size=10)
        errors = []
        uploader.on(EventName.FILE_ERROR, errors.append)

        upload_file.chunks[0].send()
        await settle()

        assert len(fake_transport.sent) == 1
        assert upload_file.chunks[0].status == ChunkStatus.ERROR
        assert len(errors) == 1
        assert errors[0].message == "status 415"

    @pytest.mark.asyncio
    async def test_transient_exception_is_retried(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10)
        upload_file = await _single_file(uploader, size=10)
        key = (upload_file.unique_identifier, 1)
        fake_transport.responses[key] = [TransientTransportError("reset"), TransientTransportError("reset")]

        upload_file.chunks[0].send()
        await settle()

        assert upload_file.chunks[0].status == ChunkStatus.SUCCESS
        assert upload_file.chunks[0].retries == 2
        assert len(fake_transport.sent) == 3

    @pytest.mark.asyncio
    async def test_retry_interval_marks_pending_retry(self, make_uploader, fake_transport):
        uploader = make_uploader(chunk_size=10, chunk_retry_interval=60.0)
        upload_file = await _single_file(uploader, size=10)
        fake_transport.responses[(upload_file.unique_identifier, 1)] = [503]

        chunk = upload_file.chunks[0]
        chunk.send()
        await settle()

        assert chunk.pending_retry is True
        assert chunk.status == ChunkStatus.UPLOADING
        assert chunk.progress() == 0.0
        assert len(fake_transport.sent) == 1

        chunk.abort()
        assert chunk.pending_retry is False
        assert chunk.status == ChunkStatus.PENDING

    @pytest.mark.asyncio
    async def test_abort_cancels_in_flight_request(self, make_uploader, fake_transport):
        fake_transport.gate = asyncio.Event()
        uploader = make_uploader(chunk_size=10)
        upload_file = await _single_file(uploader, size=10)
        chunk = upload_file.chunks[0]

        chunk.send()
        await settle()
        task = chunk.request.task
        chunk.abort()
        fake_transport.gate.set()
        await settle()

        assert task.cancelled()
        assert chunk.request is None
        assert chunk.status == ChunkStatus.PENDING
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_abort_is_idempotent(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.abort()
        chunk.abort()
        assert chunk.status == ChunkStatus.PENDING

    @pytest.mark.asyncio
    async def test_detached_chunk_ignores_send(self, make_uploader, fake_transport):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        chunk.detach()
        chunk.send()
        await settle()

        assert chunk.request is None
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_progress_notifications_are_throttled(self, make_uploader):
        uploader = make_uploader(chunk_size=10, throttle_progress_callbacks=10.0)
        upload_file = await _single_file(uploader, size=10)
        chunk = upload_file.chunks[0]
        notifications = []
        uploader.on(EventName.CHUNK_PROGRESS, notifications.append)

        request = InFlightRequest('send')
        chunk.request = request
        for loaded in range(1, 10):
            chunk._on_upload_progress(request, loaded)
        assert notifications == []
        assert chunk.loaded == 9

        chunk._last_progress_callback -= 20.0
        chunk._on_upload_progress(request, 10)
        assert len(notifications) == 1

    @pytest.mark.asyncio
    async def test_stale_progress_is_ignored(self, make_uploader):
        chunk = (await _single_file(make_uploader(chunk_size=10))).chunks[0]
        stale = InFlightRequest('send')
        chunk.request = InFlightRequest('send')
        chunk._on_upload_progress(stale, 7)
        assert chunk.loaded == 0

    @pytest.mark.asyncio
    async def test_async_preprocess_hook_defers_transmission(self, make_uploader, fake_transport):
        prepared = []

        async def prepare(chunk):
            prepared.append(chunk.offset)

        uploader = make_uploader(chunk_size=10, preprocess=prepare)
        upload_file = await _single_file(uploader, size=10)
        chunk = upload_file.chunks[0]

        chunk.send()
        assert chunk.is_busy
        assert chunk.request is None

        await settle()

        assert prepared == [0]
        assert chunk.status == ChunkStatus.SUCCESS
        assert len(fake_transport.sent) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pause_queue", [False, True])
    async def test_preprocess_hook_finishing_while_paused_holds_chunk(self, make_uploader, fake_transport, pause_queue):
        """A chunk whose pre-send hook ends during a pause stays PENDING until resumed."""
        gate = asyncio.Event()

        async def prepare(chunk):
            await gate.wait()

        uploader = make_uploader(chunk_size=10, preprocess=prepare)
        upload_file = await _single_file(uploader, size=10)
        chunk = upload_file.chunks[0]

        uploader.upload()
        await settle()
        assert chunk.preprocess_state == PreprocessState.RUNNING

        if pause_queue:
            uploader.pause()
        else:
            upload_file.pause(True)
        gate.set()
        await uploader.wait_idle()

        assert fake_transport.sent == []
        assert chunk.status == ChunkStatus.PENDING
        assert chunk.preprocess_state == PreprocessState.DONE

        if pause_queue:
            uploader.upload()
        else:
            upload_file.pause(False)
        await uploader.wait_idle()

        assert len(fake_transport.sent) == 1
        assert upload_file.is_complete()


class _ThreadRecordingItem(PathItem):
    def __init__(self, path):
        super().__init__(path)
        self.read_threads = []

    def read(self, start, end):
        self.read_threads.append(threading.get_ident())
        return super().read(start, end)


@pytest.mark.asyncio
async def test_disk_reads_run_off_the_event_loop(make_uploader, fake_transport, tmp_path):
    """Chunk bytes of disk-backed items are read in the default executor."""
    path = tmp_path / 'video.bin'
    path.write_bytes(bytes(range(25)))
    item = _ThreadRecordingItem(path)
    uploader = make_uploader(chunk_size=10)

    upload_file = (await uploader.add_file(item)).added[0]
    uploader.upload()
    await uploader.wait_idle()

    assert upload_file.is_complete()
    assert sorted(data for _, _, data in fake_transport.sent) == [bytes(range(10)), bytes(range(10, 25))]
    assert len(item.read_threads) == 2
    assert threading.get_ident() not in item.read_threads
