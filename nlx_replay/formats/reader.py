"""
Readers for CSC files.

A CSC file is one HEADER_SIZE text header followed by back-to-back
RECORD_SIZE record frames, no padding in between.

Two readers share the same framing rules:
- CscFile.open(): eager, loads every record into a list
- CscFileIterator.open(): streaming, decodes one frame per step

For the same file and record cap both produce identical records.

Usage:
    csc = CscFile.open("CSC1.ncs")
    print(csc.header.sampling_frequency, len(csc.records))

    header, records = CscFileIterator.open("CSC1.ncs", max_records=100)
    with records:
        for record in records:
            process(record)
"""

import io
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from .header import CscHeader, HEADER_SIZE
from .record import CscRecord, RECORD_SIZE
from ..core.errors import TruncatedFrameError, TrailingDataError

logger = logging.getLogger(__name__)


# A path, or an already open binary stream supporting read/seek/tell
Source = Union[str, Path, BinaryIO]


def _open_source(source: Source) -> Tuple[BinaryIO, bool, str]:
    """Return (stream, owned, name) for a path or an open stream."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"CSC file not found: {path}")
        return open(path, 'rb'), True, str(path)

    return source, False, getattr(source, 'name', '<stream>')


def _stream_size(stream: BinaryIO) -> int:
    """Bytes between the current position and the end of a seekable stream."""
    position = stream.tell()
    try:
        size = os.fstat(stream.fileno()).st_size
    except (AttributeError, OSError, io.UnsupportedOperation):
        size = stream.seek(0, io.SEEK_END)
        stream.seek(position)
    return max(size - position, 0)


def read_exact(stream: BinaryIO, size: int, frame: str) -> bytes:
    """
    Read exactly size bytes.

    Raises:
        TruncatedFrameError: If the stream ends first
    """
    data = stream.read(size)
    if len(data) < size:
        raise TruncatedFrameError(frame, size, len(data))
    return data


def frame_layout(file_size: int) -> Tuple[int, int]:
    """
    Split a file size into complete record frames and trailing bytes.

    Returns:
        (record_count, trailing_bytes)

    Raises:
        TruncatedFrameError: If the file cannot hold a header
    """
    if file_size < HEADER_SIZE:
        raise TruncatedFrameError('header', HEADER_SIZE, file_size)

    return divmod(file_size - HEADER_SIZE, RECORD_SIZE)


def _record_bound(available: int, max_records: Optional[int]) -> int:
    if max_records is None:
        return available
    if max_records < 0:
        raise ValueError(f"max_records must be >= 0, got {max_records}")
    return min(max_records, available)


def _check_trailing(name: str, trailing: int, strict: bool) -> None:
    if not trailing:
        return
    if strict:
        raise TrailingDataError(name, trailing)
    logger.warning(
        f"{name}: ignoring {trailing} bytes after the last complete record"
    )


def count_records(source: Source) -> int:
    """Number of complete record frames in a CSC file."""
    stream, owned, _ = _open_source(source)
    try:
        count, _ = frame_layout(_stream_size(stream))
        return count
    finally:
        if owned:
            stream.close()


@dataclass
class CscFile:
    """
    A fully loaded CSC file.

    Attributes:
        header: Parsed header block
        records: Every decoded record, in file order
        path: Source name ('<stream>' for anonymous streams)
        trailing_bytes: Size of a partial frame after the last record
    """
    header: CscHeader
    records: List[CscRecord] = field(default_factory=list)
    path: str = '<stream>'
    trailing_bytes: int = 0

    @classmethod
    def open(
        cls,
        source: Source,
        max_records: Optional[int] = None,
        strict: bool = False,
    ) -> 'CscFile':
        """
        Read a CSC file eagerly.

        Args:
            source: Path or binary stream positioned at the header
            max_records: Read at most this many records
            strict: Raise on a trailing partial frame instead of warning

        Raises:
            FileNotFoundError: If a path does not exist
            TruncatedFrameError: If the header or any record is short
            TrailingDataError: If strict and a partial frame is present
        """
        stream, owned, name = _open_source(source)
        try:
            available, trailing = frame_layout(_stream_size(stream))
            header = CscHeader.decode(read_exact(stream, HEADER_SIZE, 'header'))
            _check_trailing(name, trailing, strict)

            records = [
                CscRecord.decode(read_exact(stream, RECORD_SIZE, 'record'))
                for _ in range(_record_bound(available, max_records))
            ]
        finally:
            if owned:
                stream.close()

        logger.debug(f"{name}: loaded {len(records)} records")

        return cls(
            header=header,
            records=records,
            path=name,
            trailing_bytes=trailing,
        )

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[CscRecord]:
        return iter(self.records)

    @property
    def sample_count(self) -> int:
        """Total valid samples across all records."""
        return sum(r.number_of_valid_samples for r in self.records)


class CscFileIterator:
    """
    Lazy, forward-only sequence of records from a CSC file.

    The number of steps is fixed when the file is opened (complete frames
    available, or max_records if smaller). Each step reads and decodes one
    frame. A step that fails raises and ends the sequence.
    """

    def __init__(
        self,
        stream: BinaryIO,
        num_records: int,
        owned: bool = True,
        name: str = '<stream>',
        trailing_bytes: int = 0,
    ):
        self._stream = stream
        self._owned = owned
        self.name = name
        self.num_records = num_records
        self.trailing_bytes = trailing_bytes
        self.position = 0

    @classmethod
    def open(
        cls,
        source: Source,
        max_records: Optional[int] = None,
        strict: bool = False,
    ) -> Tuple[CscHeader, 'CscFileIterator']:
        """
        Open a CSC file for streaming.

        The header is decoded immediately; records are decoded on demand.

        Returns:
            (header, iterator)
        """
        stream, owned, name = _open_source(source)
        try:
            available, trailing = frame_layout(_stream_size(stream))
            header = CscHeader.decode(read_exact(stream, HEADER_SIZE, 'header'))
            _check_trailing(name, trailing, strict)
            bound = _record_bound(available, max_records)
        except Exception:
            if owned:
                stream.close()
            raise

        return header, cls(
            stream,
            bound,
            owned=owned,
            name=name,
            trailing_bytes=trailing,
        )

    def __iter__(self) -> 'CscFileIterator':
        return self

    def __next__(self) -> CscRecord:
        if self.position >= self.num_records:
            self.close()
            raise StopIteration

        try:
            raw = read_exact(self._stream, RECORD_SIZE, 'record')
        except TruncatedFrameError:
            # End the sequence; callers stop on the first error anyway
            self.position = self.num_records
            self.close()
            raise

        self.position += 1
        return CscRecord.decode(raw)

    def __len__(self) -> int:
        return self.num_records

    @property
    def remaining(self) -> int:
        return self.num_records - self.position

    def close(self) -> None:
        """Close the underlying file if this iterator opened it."""
        if self._owned and not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> 'CscFileIterator':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
