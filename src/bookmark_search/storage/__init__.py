"""Vector index and its binary persistence."""

from .index import (
    DimensionMismatchError,
    SearchResult,
    VectorEntry,
    VectorIndex,
    ValueOutOfRangeError,
    VectorIndexError,
    ZeroNormVectorError,
)
from .vectors import (
    FORMAT_VERSION,
    HEADER_SIZE,
    ChecksumMismatchError,
    InvalidFormatError,
    ModelMismatchError,
    StorageHeader,
    StorageIOError,
    StorageLoadResult,
    StoredDimensionMismatchError,
    VectorStorage,
    VectorStorageError,
    VersionMismatchError,
)

__all__ = [
    "DimensionMismatchError",
    "SearchResult",
    "VectorEntry",
    "VectorIndex",
    "ValueOutOfRangeError",
    "VectorIndexError",
    "ZeroNormVectorError",
    "FORMAT_VERSION",
    "HEADER_SIZE",
    "ChecksumMismatchError",
    "InvalidFormatError",
    "ModelMismatchError",
    "StorageHeader",
    "StorageIOError",
    "StorageLoadResult",
    "StoredDimensionMismatchError",
    "VectorStorage",
    "VectorStorageError",
    "VersionMismatchError",
]
