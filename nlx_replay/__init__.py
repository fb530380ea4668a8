"""
nlx-replay - Replay Neuralynx CSC recordings as live raw data packets.

This package provides:
- formats: CSC header and record codecs, eager and streaming readers
- protocols: Raw data packet codec and CSC-to-packet conversion
- replay: Fixed-period pacing, UDP sender and the replay runner
- collectors: UDP receiver for loopback verification
- config: YAML configuration with environment variable support
- cli: Command-line interface
"""

__version__ = "0.3.0"

from .core import (
    ErrorCode,
    NlxError,
    TruncatedFrameError,
    TrailingDataError,
    DeclaredLengthError,
    TransformError,
    SampleCountMismatchError,
    ConfigError,
)
from .formats import (
    CscHeader,
    HEADER_SIZE,
    CscRecord,
    RECORD_SIZE,
    SAMPLES_PER_RECORD,
    CscFile,
    CscFileIterator,
    count_records,
)
from .protocols import NlxPacket, records_to_packets, stream_packets
from .replay import run_paced, run_paced_while, PacingStats, UDPSender, ReplayRunner
from .config import NlxReplayConfig, load_config

__all__ = [
    # Version
    '__version__',
    # Errors
    'ErrorCode',
    'NlxError',
    'TruncatedFrameError',
    'TrailingDataError',
    'DeclaredLengthError',
    'TransformError',
    'SampleCountMismatchError',
    'ConfigError',
    # Formats
    'CscHeader',
    'HEADER_SIZE',
    'CscRecord',
    'RECORD_SIZE',
    'SAMPLES_PER_RECORD',
    'CscFile',
    'CscFileIterator',
    'count_records',
    # Protocols
    'NlxPacket',
    'records_to_packets',
    'stream_packets',
    # Replay
    'run_paced',
    'run_paced_while',
    'PacingStats',
    'UDPSender',
    'ReplayRunner',
    # Config
    'NlxReplayConfig',
    'load_config',
]
