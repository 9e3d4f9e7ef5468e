"""Shared pytest fixtures for all tests."""

import asyncio
from typing import Dict, List, Optional, Set, Tuple

import pytest

from cli.config import Config
from common.constants import SUCCESS_STATUS_CODES
from common.types import ChunkMeta, FileMeta, TransportResponse
from uploader.exceptions import TransientTransportError
from uploader.transport import TransportAdapter
from uploader.uploader import Uploader


class FakeTransport(TransportAdapter):
    """
    Scriptable in-memory transport.

    Chunks are keyed by (unique_identifier, chunk_number). `existing` holds the
    keys the probe reports as stored; `responses` maps a key to a list of
    outcomes (status codes or exceptions) consumed one per send, falling back
    to `default_status`. While `gate` is set to an unset Event, sends block.
    """

    def __init__(self):
        self.existing: Set[Tuple[str, int]] = set()
        self.responses: Dict[Tuple[str, int], list] = {}
        self.default_status = 200
        self.probe_error = False
        self.gate: Optional[asyncio.Event] = None

        self.probed: List[Tuple[str, int]] = []
        self.sent: List[Tuple[str, int, bytes]] = []
        self.chunk_metas: List[ChunkMeta] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

    async def probe_exists(self, file_meta: FileMeta, chunk_meta: ChunkMeta) -> bool:
        key = (file_meta.unique_identifier, chunk_meta.number)
        self._enter()
        try:
            self.probed.append(key)
            await asyncio.sleep(0)
            if self.probe_error:
                raise TransientTransportError("probe unavailable")
            return key in self.existing
        finally:
            self.in_flight -= 1

    async def send_chunk(self, file_meta, chunk_meta, data, on_progress=None) -> TransportResponse:
        key = (file_meta.unique_identifier, chunk_meta.number)
        self._enter()
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)

            self.sent.append((key[0], key[1], data))
            self.chunk_metas.append(chunk_meta)
            script = self.responses.get(key)
            outcome = script.pop(0) if script else self.default_status
            if isinstance(outcome, Exception):
                raise outcome

            if on_progress is not None:
                on_progress(len(data))
            if outcome in SUCCESS_STATUS_CODES:
                self.existing.add(key)
            return TransportResponse(status_code=outcome, body=f"status {outcome}")
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


async def settle(iterations: int = 20) -> None:
    """Let pending tasks and call_soon callbacks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def fake_transport():
    """
    Create a fresh FakeTransport.

    Returns:
        FakeTransport with no stored chunks and 200 responses
    """
    return FakeTransport()


@pytest.fixture
def make_uploader(fake_transport):
    """
    Factory for Uploaders wired to the fake transport.

    Retries are immediate and probes are off unless a test asks otherwise.

    Args:
        fake_transport: FakeTransport fixture

    Returns:
        Callable accepting option overrides
    """
    def _make(**overrides) -> Uploader:
        options = {'chunk_retry_interval': None, 'test_chunks': False}
        options.update(overrides)
        return Uploader(transport=fake_transport, **options)

    return _make


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .resumable directory
    """
    config_dir = tmp_path / '.resumable'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, monkeypatch):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture
        monkeypatch: pytest monkeypatch fixture

    Returns:
        Config instance with temp config file
    """
    monkeypatch.delenv('RESUMABLE_TARGET', raising=False)
    monkeypatch.delenv('RESUMABLE_TEST_TARGET', raising=False)
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def sample_tree(tmp_path):
    """
    Create a small directory tree.

    Layout:
        photos/b.jpg, photos/a.png, photos/raw/c.txt

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the photos directory
    """
    root = tmp_path / 'photos'
    (root / 'raw').mkdir(parents=True)
    (root / 'b.jpg').write_bytes(b'b' * 10)
    (root / 'a.png').write_bytes(b'a' * 20)
    (root / 'raw' / 'c.txt').write_bytes(b'c' * 30)
    return root
