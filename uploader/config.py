"""Options model for the upload engine."""

from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from common.constants import (
    CHUNK_NUMBER_PARAMETER_NAME,
    CHUNK_RETRY_INTERVAL_SECONDS,
    CHUNK_SIZE_BYTES,
    CHUNK_SIZE_PARAMETER_NAME,
    CURRENT_CHUNK_SIZE_PARAMETER_NAME,
    DEFAULT_TARGET,
    FILE_NAME_PARAMETER_NAME,
    FILE_PARAMETER_NAME,
    IDENTIFIER_PARAMETER_NAME,
    MAX_CHUNK_RETRIES,
    PERMANENT_ERROR_CODES,
    RELATIVE_PATH_PARAMETER_NAME,
    SIMULTANEOUS_UPLOADS,
    THROTTLE_PROGRESS_SECONDS,
    TOTAL_CHUNKS_PARAMETER_NAME,
    TOTAL_SIZE_PARAMETER_NAME,
    TYPE_PARAMETER_NAME,
)


class UploaderOptions(BaseModel):
    """
    Every tunable of the engine: chunking, concurrency, retry policy,
    admission limits and the HTTP wire parameter names.

    `query` and `headers` accept either a constant mapping or a
    `callable(file, chunk)` returning one. Callbacks receive
    `(item, error_count)`; `max_files_error_callback` receives the whole batch.
    """

    model_config = ConfigDict(extra='forbid', arbitrary_types_allowed=True)

    chunk_size: int = Field(default=CHUNK_SIZE_BYTES, gt=0)
    force_chunk_size: bool = False
    simultaneous_uploads: int = Field(default=SIMULTANEOUS_UPLOADS, ge=1)
    prioritize_first_and_last_chunk: bool = False
    test_chunks: bool = True

    max_chunk_retries: int = Field(default=MAX_CHUNK_RETRIES, ge=0)
    chunk_retry_interval: Optional[float] = Field(default=CHUNK_RETRY_INTERVAL_SECONDS, ge=0)
    permanent_errors: List[int] = Field(default_factory=lambda: list(PERMANENT_ERROR_CODES))
    throttle_progress_callbacks: float = Field(default=THROTTLE_PROGRESS_SECONDS, ge=0)
    request_timeout: Optional[float] = Field(default=None, gt=0)

    target: Union[str, Callable[[Dict[str, Any]], str]] = DEFAULT_TARGET
    test_target: Optional[str] = None
    method: Literal['multipart', 'octet'] = 'multipart'
    upload_method: str = 'POST'
    test_method: str = 'GET'
    parameter_namespace: str = ''
    query: Union[Dict[str, Any], Callable[..., Dict[str, Any]]] = Field(default_factory=dict)
    headers: Union[Dict[str, str], Callable[..., Dict[str, str]]] = Field(default_factory=dict)

    file_parameter_name: str = FILE_PARAMETER_NAME
    chunk_number_parameter_name: str = CHUNK_NUMBER_PARAMETER_NAME
    chunk_size_parameter_name: str = CHUNK_SIZE_PARAMETER_NAME
    current_chunk_size_parameter_name: str = CURRENT_CHUNK_SIZE_PARAMETER_NAME
    total_size_parameter_name: str = TOTAL_SIZE_PARAMETER_NAME
    type_parameter_name: str = TYPE_PARAMETER_NAME
    identifier_parameter_name: str = IDENTIFIER_PARAMETER_NAME
    file_name_parameter_name: str = FILE_NAME_PARAMETER_NAME
    relative_path_parameter_name: str = RELATIVE_PATH_PARAMETER_NAME
    total_chunks_parameter_name: str = TOTAL_CHUNKS_PARAMETER_NAME

    preprocess: Optional[Callable[..., Any]] = None
    preprocess_file: Optional[Callable[..., Any]] = None
    generate_unique_identifier: Optional[Callable[..., Any]] = None

    max_files: Optional[int] = Field(default=None, ge=1)
    min_file_size: Optional[int] = Field(default=None, ge=0)
    max_file_size: Optional[int] = Field(default=None, ge=0)
    file_type: List[str] = Field(default_factory=list)

    max_files_error_callback: Optional[Callable[..., Any]] = None
    min_file_size_error_callback: Optional[Callable[..., Any]] = None
    max_file_size_error_callback: Optional[Callable[..., Any]] = None
    file_type_error_callback: Optional[Callable[..., Any]] = None
