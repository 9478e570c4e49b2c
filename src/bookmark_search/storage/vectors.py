"""
Binary persistence for the vector index (``vectors.bin``).

Layout, all integers little-endian::

    header (47 bytes)
      version       u8
      model_id      32 bytes   SHA-256 of the embedding model name
      dimensions    u16
      entry_count   u64
      checksum      u32        CRC32 of the 43 bytes above
    entries (entry_count times)
      bookmark_id   u64
      content_hash  u64
      embedding     dimensions x f32

The file is always rewritten whole: temp file, fsync, atomic rename.
"""

from __future__ import annotations

import os
import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable

import numpy as np
import structlog

from .index import VectorIndex, VectorIndexError

logger = structlog.get_logger(__name__)

FORMAT_VERSION = 1
MODEL_ID_SIZE = 32

_HEADER_FIELDS = struct.Struct("<B32sHQ")
_CHECKSUM = struct.Struct("<I")
HEADER_SIZE = _HEADER_FIELDS.size + _CHECKSUM.size


class VectorStorageError(Exception):
    """Base class for vector storage failures."""

    recoverable = False


class StorageIOError(VectorStorageError):
    """The file could not be read or written."""


class InvalidFormatError(VectorStorageError):
    """The file is truncated or structurally invalid."""


class ChecksumMismatchError(VectorStorageError):
    def __init__(self) -> None:
        super().__init__("Checksum mismatch: file may be corrupted")


class VersionMismatchError(VectorStorageError):
    recoverable = True

    def __init__(self, file_version: int, supported_version: int) -> None:
        super().__init__(
            f"Version mismatch: file version {file_version}, "
            f"supported version {supported_version}"
        )
        self.file_version = file_version
        self.supported_version = supported_version


class ModelMismatchError(VectorStorageError):
    recoverable = True

    def __init__(self) -> None:
        super().__init__("Model mismatch: file uses a different embedding model")


class StoredDimensionMismatchError(VectorStorageError):
    recoverable = True

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Dimension mismatch: expected {expected}, file has {got}")
        self.expected = expected
        self.got = got


@dataclass(frozen=True)
class StorageHeader:
    version: int
    model_id: bytes
    dimensions: int
    entry_count: int
    checksum: int

    def pack(self) -> bytes:
        fields = _HEADER_FIELDS.pack(self.version, self.model_id, self.dimensions, self.entry_count)
        return fields + _CHECKSUM.pack(zlib.crc32(fields))

    @classmethod
    def unpack(cls, raw: bytes) -> "StorageHeader":
        if len(raw) < HEADER_SIZE:
            raise InvalidFormatError(
                f"File too short for header: {len(raw)} of {HEADER_SIZE} bytes"
            )
        fields = raw[: _HEADER_FIELDS.size]
        (stored_checksum,) = _CHECKSUM.unpack(raw[_HEADER_FIELDS.size : HEADER_SIZE])
        if zlib.crc32(fields) != stored_checksum:
            raise ChecksumMismatchError()
        version, model_id, dimensions, entry_count = _HEADER_FIELDS.unpack(fields)
        return cls(version, model_id, dimensions, entry_count, stored_checksum)


@dataclass(frozen=True)
class StorageLoadResult:
    index: VectorIndex
    skipped: int = 0


def _entry_dtype(dimensions: int) -> np.dtype:
    return np.dtype(
        [
            ("id", "<u8"),
            ("content_hash", "<u8"),
            ("embedding", "<f4", (dimensions,)),
        ]
    )


def _read_v1_entries(handle: BinaryIO, header: StorageHeader) -> np.ndarray:
    dtype = _entry_dtype(header.dimensions)
    if header.entry_count == 0:
        return np.zeros(0, dtype=dtype)
    expected = dtype.itemsize * header.entry_count
    body = handle.read(expected)
    if len(body) != expected:
        raise InvalidFormatError(
            f"Truncated entries: expected {expected} bytes, found {len(body)}"
        )
    return np.frombuffer(body, dtype=dtype, count=header.entry_count)


# One reader per on-disk version; a v2 reader slots in here next to v1.
_ENTRY_READERS: dict[int, Callable[[BinaryIO, StorageHeader], np.ndarray]] = {
    1: _read_v1_entries,
}


class VectorStorage:
    """Reads and writes a ``VectorIndex`` to a single binary file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Failed to delete {self.path}: {exc}") from exc

    def read_header(self) -> StorageHeader:
        """Read and checksum-verify the header without loading entries."""
        try:
            with self.path.open("rb") as handle:
                return StorageHeader.unpack(handle.read(HEADER_SIZE))
        except OSError as exc:
            raise StorageIOError(f"Failed to read {self.path}: {exc}") from exc

    def load(self, expected_model_id: bytes, expected_dimensions: int) -> VectorIndex:
        """Load the index, rejecting files from another model or dimensionality."""
        return self.load_report(expected_model_id, expected_dimensions).index

    def load_report(
        self, expected_model_id: bytes, expected_dimensions: int
    ) -> StorageLoadResult:
        """Like ``load`` but also reports how many stored entries were dropped."""
        try:
            with self.path.open("rb") as handle:
                header = StorageHeader.unpack(handle.read(HEADER_SIZE))
                self._validate_header(header, expected_model_id, expected_dimensions)
                records = _ENTRY_READERS[header.version](handle, header)
        except OSError as exc:
            raise StorageIOError(f"Failed to read {self.path}: {exc}") from exc

        index = VectorIndex(header.dimensions)
        skipped = 0
        for record in records:
            try:
                index.insert(int(record["id"]), int(record["content_hash"]), record["embedding"])
            except VectorIndexError:
                skipped += 1

        if skipped:
            logger.warning(
                "vector_entries_skipped",
                path=str(self.path),
                skipped=skipped,
                loaded=len(index),
            )
        return StorageLoadResult(index=index, skipped=skipped)

    def save(self, index: VectorIndex, model_id: bytes) -> None:
        """Atomically replace the file with the contents of `index`."""
        if len(model_id) != MODEL_ID_SIZE:
            raise ValueError(f"model_id must be {MODEL_ID_SIZE} bytes, got {len(model_id)}")

        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("wb") as handle:
                self._write(handle, index, model_id)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except Exception as exc:
            # Header fields that overflow their struct slot fail here too.
            if temp_path.exists():
                temp_path.unlink()
            raise StorageIOError(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("vector_index_saved", path=str(self.path), entries=len(index))

    @staticmethod
    def _write(handle: BinaryIO, index: VectorIndex, model_id: bytes) -> None:
        header = StorageHeader(
            version=FORMAT_VERSION,
            model_id=model_id,
            dimensions=index.dimensions,
            entry_count=len(index),
            checksum=0,
        )
        handle.write(header.pack())

        entries = sorted(index.iter(), key=lambda item: item[0])
        if not entries:
            return
        records = np.zeros(len(entries), dtype=_entry_dtype(index.dimensions))
        records["id"] = [bookmark_id for bookmark_id, _ in entries]
        records["content_hash"] = [entry.content_hash for _, entry in entries]
        records["embedding"] = np.stack([entry.embedding for _, entry in entries])
        handle.write(records.tobytes())

    @staticmethod
    def _validate_header(
        header: StorageHeader, expected_model_id: bytes, expected_dimensions: int
    ) -> None:
        if header.version not in _ENTRY_READERS:
            if header.version > FORMAT_VERSION:
                raise VersionMismatchError(header.version, FORMAT_VERSION)
            raise InvalidFormatError(f"Unknown file version {header.version}")
        if header.model_id != expected_model_id:
            raise ModelMismatchError()
        if header.dimensions != expected_dimensions:
            raise StoredDimensionMismatchError(expected_dimensions, header.dimensions)
