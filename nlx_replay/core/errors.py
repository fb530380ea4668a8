"""
Error codes and exceptions for nlx-replay.

Structured error codes for machine-parseable failures.

Format: E{category}{number}
- E1xxx: File format errors
- E2xxx: Packet errors
- E3xxx: Transform errors
- E4xxx: Configuration errors

Every exception raised by the core carries one of these codes plus a
context dict, so callers can inspect e.g. which channel mismatched without
parsing the message.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Structured error codes."""

    # E1xxx: File format errors
    E1001_TRUNCATED_HEADER = "E1001"
    E1002_TRUNCATED_RECORD = "E1002"
    E1003_TRUNCATED_PACKET = "E1003"
    E1004_TRAILING_DATA = "E1004"

    # E2xxx: Packet errors
    E2001_INVALID_DECLARED_SIZE = "E2001"

    # E3xxx: Transform errors
    E3001_INVALID_CHANNELS = "E3001"
    E3002_SAMPLE_COUNT_MISMATCH = "E3002"

    # E4xxx: Configuration errors
    E4001_INVALID_CONFIG = "E4001"


ERROR_METADATA = {
    ErrorCode.E1001_TRUNCATED_HEADER: {
        'severity': 'error',
        'message': 'File header truncated',
        'recoverable': False,
    },
    ErrorCode.E1002_TRUNCATED_RECORD: {
        'severity': 'error',
        'message': 'Record frame truncated',
        'recoverable': False,
    },
    ErrorCode.E1003_TRUNCATED_PACKET: {
        'severity': 'error',
        'message': 'Packet truncated',
        'recoverable': False,
    },
    ErrorCode.E1004_TRAILING_DATA: {
        'severity': 'warning',
        'message': 'Partial record frame after last complete record',
        'recoverable': True,
    },
    ErrorCode.E2001_INVALID_DECLARED_SIZE: {
        'severity': 'error',
        'message': 'Packet declared size out of range',
        'recoverable': False,
    },
    ErrorCode.E3001_INVALID_CHANNELS: {
        'severity': 'error',
        'message': 'Invalid channel records',
        'recoverable': False,
    },
    ErrorCode.E3002_SAMPLE_COUNT_MISMATCH: {
        'severity': 'error',
        'message': 'Channels disagree on valid sample count',
        'recoverable': False,
    },
    ErrorCode.E4001_INVALID_CONFIG: {
        'severity': 'error',
        'message': 'Invalid configuration',
        'recoverable': False,
    },
}

_TRUNCATION_CODES = {
    'header': ErrorCode.E1001_TRUNCATED_HEADER,
    'record': ErrorCode.E1002_TRUNCATED_RECORD,
    'packet': ErrorCode.E1003_TRUNCATED_PACKET,
}


class NlxError(Exception):
    """
    Base class for all nlx-replay errors.

    Example:
        try:
            packets = records_to_packets(records)
        except NlxError as e:
            log.error(e.to_dict())
    """

    code: ErrorCode = ErrorCode.E3001_INVALID_CHANNELS

    def __init__(self, detail: str, context: Optional[dict] = None):
        super().__init__(detail)
        self.detail = detail
        self.context = context or {}

    @property
    def severity(self) -> str:
        return ERROR_METADATA.get(self.code, {}).get('severity', 'error')

    @property
    def message(self) -> str:
        base_msg = ERROR_METADATA.get(self.code, {}).get('message', 'Unknown error')
        return f"{base_msg}: {self.detail}"

    @property
    def recoverable(self) -> bool:
        return ERROR_METADATA.get(self.code, {}).get('recoverable', False)

    def to_dict(self) -> dict:
        return {
            'code': self.code.value,
            'severity': self.severity,
            'message': self.message,
            'recoverable': self.recoverable,
            'context': self.context,
        }


class TruncatedFrameError(NlxError, EOFError):
    """A fixed-size frame (header, record or packet) could not be fully read."""

    def __init__(self, frame: str, expected: int, actual: int):
        self.code = _TRUNCATION_CODES[frame]
        self.frame = frame
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{frame} frame too small: {actual} < {expected} bytes",
            {'frame': frame, 'expected': expected, 'actual': actual},
        )


class TrailingDataError(NlxError, ValueError):
    """File size is not header size plus a whole number of record frames."""

    code = ErrorCode.E1004_TRAILING_DATA

    def __init__(self, path: str, trailing_bytes: int):
        self.path = path
        self.trailing_bytes = trailing_bytes
        super().__init__(
            f"{path} has {trailing_bytes} bytes after the last complete record",
            {'path': path, 'trailing_bytes': trailing_bytes},
        )


class DeclaredLengthError(NlxError, ValueError):
    """Packet declares fewer elements than its extras block, or too many."""

    code = ErrorCode.E2001_INVALID_DECLARED_SIZE

    def __init__(self, declared: int, minimum: int, maximum: int):
        self.declared = declared
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"declared size {declared} not in [{minimum}, {maximum}]",
            {'declared': declared, 'minimum': minimum, 'maximum': maximum},
        )


class TransformError(NlxError, ValueError):
    """Channel records cannot be turned into packets."""

    code = ErrorCode.E3001_INVALID_CHANNELS


class SampleCountMismatchError(TransformError):
    """One channel reports a different valid-sample count than channel 0."""

    code = ErrorCode.E3002_SAMPLE_COUNT_MISMATCH

    def __init__(self, channel_index: int, count: int, expected: int):
        self.channel_index = channel_index
        self.count = count
        self.expected = expected
        super().__init__(
            f"channel {channel_index} has {count} valid samples, expected "
            f"{expected}; all channels must have the same number of samples",
            {'channel_index': channel_index, 'count': count, 'expected': expected},
        )


class ConfigError(NlxError, ValueError):
    """Configuration could not be loaded or failed validation."""

    code = ErrorCode.E4001_INVALID_CONFIG
