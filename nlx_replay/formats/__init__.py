"""CSC file format definitions and readers."""

from .header import CscHeader, HEADER_SIZE
from .record import CscRecord, RECORD_SIZE, SAMPLES_PER_RECORD
from .reader import CscFile, CscFileIterator, count_records

__all__ = [
    'CscHeader',
    'HEADER_SIZE',
    'CscRecord',
    'RECORD_SIZE',
    'SAMPLES_PER_RECORD',
    'CscFile',
    'CscFileIterator',
    'count_records',
]
