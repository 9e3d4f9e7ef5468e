"""Project-wide constants (default chunk size, retry policy, wire parameter names)."""

CHUNK_SIZE_BYTES: int = 1 * 1024 * 1024  # 1 MiB default chunk size
SIMULTANEOUS_UPLOADS: int = 3

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024

MAX_CHUNK_RETRIES: int = 10
CHUNK_RETRY_INTERVAL_SECONDS: float = 1.0
PERMANENT_ERROR_CODES: tuple[int, ...] = (400, 401, 403, 404, 409, 415, 500, 501)
SUCCESS_STATUS_CODES: tuple[int, ...] = (200, 201)

THROTTLE_PROGRESS_SECONDS: float = 0.5

# Applied to a chunk's displayed progress until the receiver has answered.
PROGRESS_DAMPING_FACTOR: float = 0.95
PROGRESS_COMPLETE_THRESHOLD: float = 0.99999

DEFAULT_TARGET: str = "http://localhost:3000/api/upload"

FILE_PARAMETER_NAME = "file"
CHUNK_NUMBER_PARAMETER_NAME = "resumableChunkNumber"
CHUNK_SIZE_PARAMETER_NAME = "resumableChunkSize"
CURRENT_CHUNK_SIZE_PARAMETER_NAME = "resumableCurrentChunkSize"
TOTAL_SIZE_PARAMETER_NAME = "resumableTotalSize"
TYPE_PARAMETER_NAME = "resumableType"
IDENTIFIER_PARAMETER_NAME = "resumableIdentifier"
FILE_NAME_PARAMETER_NAME = "resumableFilename"
RELATIVE_PATH_PARAMETER_NAME = "resumableRelativePath"
TOTAL_CHUNKS_PARAMETER_NAME = "resumableTotalChunks"
