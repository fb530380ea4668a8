"""Core error taxonomy shared by every nlx-replay component."""

from .errors import (
    ErrorCode,
    ERROR_METADATA,
    NlxError,
    TruncatedFrameError,
    TrailingDataError,
    DeclaredLengthError,
    TransformError,
    SampleCountMismatchError,
    ConfigError,
)

__all__ = [
    'ErrorCode',
    'ERROR_METADATA',
    'NlxError',
    'TruncatedFrameError',
    'TrailingDataError',
    'DeclaredLengthError',
    'TransformError',
    'SampleCountMismatchError',
    'ConfigError',
]
