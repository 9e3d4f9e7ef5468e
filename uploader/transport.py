"""Transport adapters: existence probe and chunk transmission."""

import io
import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

import httpx

from common.constants import STREAM_PIECE_SIZE_BYTES, SUCCESS_STATUS_CODES
from common.logging_config import get_logger
from common.types import ChunkMeta, FileMeta, TransportResponse
from uploader.config import UploaderOptions
from uploader.exceptions import TransientTransportError

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class TransportAdapter(ABC):
    """
    Collaborator that talks to the receiver on behalf of a chunk.

    Implementations raise TransientTransportError for failures worth retrying
    and PermanentTransportError for failures that are not. HTTP-like status
    codes are returned in the TransportResponse and classified by the chunk.
    """

    @abstractmethod
    async def probe_exists(self, file_meta: FileMeta, chunk_meta: ChunkMeta) -> bool:
        """Return True if the receiver already stores this chunk."""

    @abstractmethod
    async def send_chunk(
        self,
        file_meta: FileMeta,
        chunk_meta: ChunkMeta,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransportResponse:
        """Transmit one chunk and return the receiver's answer."""

    async def close(self) -> None:
        """Release any connections held by the adapter."""


class ProgressReader(io.BytesIO):
    """In-memory file-like body that reports how many bytes have been read so far."""

    def __init__(self, data: bytes, on_progress: Optional[ProgressCallback] = None):
        super().__init__(data)
        self.on_progress = on_progress

    def read(self, size: Optional[int] = -1) -> bytes:
        piece = super().read(size)
        if piece and self.on_progress is not None:
            self.on_progress(self.tell())
        return piece


class HttpTransport(TransportAdapter):
    """HTTP transport speaking the resumable chunk protocol over httpx."""

    def __init__(self, options: UploaderOptions, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the HTTP transport.

        Args:
            options: Engine options (targets, methods, parameter names)
            client: Optional preconfigured AsyncClient (tests inject a MockTransport here)
        """
        self.options = options
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()
        logger.info(f"Initialized HttpTransport [target={self._describe_target()} method={options.method}]")

    def _calculate_upload_timeout(self, chunk_bytes: int) -> float:
        """
        Calculate the timeout for one request.

        Args:
            chunk_bytes: Size of the request body in bytes

        Returns:
            Configured request_timeout, or 30s base + 0.1s per MB
        """
        if self.options.request_timeout is not None:
            return self.options.request_timeout
        base_timeout = 30.0
        size_mb = chunk_bytes / (1024 * 1024)
        return base_timeout + size_mb * 0.1

    def build_parameters(self, file_meta: FileMeta, chunk_meta: ChunkMeta) -> Dict[str, str]:
        """
        Build the namespaced resumable parameters for a chunk request.

        Args:
            file_meta: File-level fields
            chunk_meta: Chunk-level fields, including caller-supplied query values

        Returns:
            Mapping of wire parameter name to string value
        """
        o = self.options
        params = {
            o.chunk_number_parameter_name: chunk_meta.number,
            o.chunk_size_parameter_name: chunk_meta.chunk_size,
            o.current_chunk_size_parameter_name: chunk_meta.current_chunk_size,
            o.total_size_parameter_name: file_meta.size,
            o.type_parameter_name: file_meta.mime_type,
            o.identifier_parameter_name: file_meta.unique_identifier,
            o.file_name_parameter_name: file_meta.file_name,
            o.relative_path_parameter_name: file_meta.relative_path,
            o.total_chunks_parameter_name: chunk_meta.total_chunks,
        }
        params.update(chunk_meta.query)
        namespace = o.parameter_namespace
        return {f"{namespace}{k}": str(v) for k, v in params.items() if v is not None}

    def get_target(self, request_type: str, params: Dict[str, str]) -> Tuple[str, Optional[Dict[str, str]]]:
        """
        Resolve the URL for a probe ('test') or transmission ('upload').

        Args:
            request_type: 'test' or 'upload'
            params: Parameters to encode

        Returns:
            Tuple of (url, query_params). query_params is None when a callable
            target already embedded them in the URL.
        """
        target = self.options.target
        if request_type == 'test' and self.options.test_target:
            target = self.options.target if self.options.test_target == '/' else self.options.test_target

        if callable(target):
            return target(params), None
        return target, params

    async def probe_exists(self, file_meta: FileMeta, chunk_meta: ChunkMeta) -> bool:
        parameters = self.build_parameters(file_meta, chunk_meta)
        url, query = self.get_target('test', parameters)
        headers = self._make_headers(chunk_meta)

        try:
            response = await self.client.request(
                self.options.test_method,
                url,
                params=query,
                headers=headers,
                timeout=self._calculate_upload_timeout(0),
            )
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Probe timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Probe failed: {type(e).__name__}: {e}") from e

        exists = response.status_code in SUCCESS_STATUS_CODES
        logger.debug(
            f"Probe {file_meta.unique_identifier}#{chunk_meta.number}: "
            f"status={response.status_code} exists={exists} [request_id={headers['X-Request-ID']}]"
        )
        return exists

    async def send_chunk(
        self,
        file_meta: FileMeta,
        chunk_meta: ChunkMeta,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransportResponse:
        o = self.options
        parameters = self.build_parameters(file_meta, chunk_meta)
        url, query = self.get_target('upload', parameters)
        headers = self._make_headers(chunk_meta)

        if o.method == 'octet':
            headers['Content-Type'] = 'application/octet-stream'
            headers['Content-Length'] = str(len(data))
            request_kwargs = {
                'params': query,
                'content': _stream_with_progress(data, on_progress),
            }
        else:
            file_field = f"{o.parameter_namespace}{o.file_parameter_name}"
            mime_type = file_meta.mime_type or 'application/octet-stream'
            request_kwargs = {
                'data': parameters,
                'files': {file_field: (file_meta.file_name, ProgressReader(data, on_progress), mime_type)},
            }

        try:
            response = await self.client.request(
                o.upload_method,
                url,
                headers=headers,
                timeout=self._calculate_upload_timeout(len(data)),
                **request_kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Upload timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Upload failed: {type(e).__name__}: {e}") from e

        logger.debug(
            f"Sent {file_meta.unique_identifier}#{chunk_meta.number} ({len(data)} bytes): "
            f"status={response.status_code} [request_id={headers['X-Request-ID']}]"
        )
        return TransportResponse(status_code=response.status_code, body=response.text)

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self.client.aclose()

    def _make_headers(self, chunk_meta: ChunkMeta) -> Dict[str, str]:
        headers = {'X-Request-ID': str(uuid.uuid4())}
        headers.update(chunk_meta.headers)
        return headers

    def _describe_target(self) -> str:
        target = self.options.target
        return target if isinstance(target, str) else getattr(target, '__name__', 'callable')


async def _stream_with_progress(data: bytes, on_progress: Optional[ProgressCallback]) -> AsyncIterator[bytes]:
    sent = 0
    for start in range(0, len(data), STREAM_PIECE_SIZE_BYTES):
        piece = data[start:start + STREAM_PIECE_SIZE_BYTES]
        sent += len(piece)
        if on_progress is not None:
            on_progress(sent)
        yield piece
