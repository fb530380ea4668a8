"""
Binary sample record of Neuralynx CSC files.

Layout (1044 bytes, little-endian):
    Bytes 0-7:     timestamp      (u64) Device clock, microseconds
    Bytes 8-11:    channel        (u32) Channel number
    Bytes 12-15:   frequency      (u32) Nominal sampling frequency in Hz
    Bytes 16-19:   valid_samples  (u32) Number of valid entries in samples
    Bytes 20-1043: samples        (512 x i16) Sample amplitudes

Total: 8 + 4 + 4 + 4 + 512 * 2 = 1044 bytes

Slots past valid_samples are padding and carry no signal.
"""

import struct
from dataclasses import dataclass
from typing import Tuple

from ..core.errors import TruncatedFrameError


# Sample slots per record
SAMPLES_PER_RECORD = 512

# Record size in bytes
RECORD_SIZE = 1044

# Q=u64 timestamp, I=u32 channel, I=u32 frequency, I=u32 valid count,
# 512h=i16 samples
RECORD_FORMAT = f'<QIII{SAMPLES_PER_RECORD}h'

_RECORD_STRUCT = struct.Struct(RECORD_FORMAT)


@dataclass(frozen=True)
class CscRecord:
    """
    One decoded record frame.

    Attributes:
        timestamp: Timestamp of the first sample (device clock units)
        channel_number: Channel identifier
        sample_frequency: Nominal sampling frequency in Hz
        number_of_valid_samples: Count of meaningful entries in samples
        samples: Exactly SAMPLES_PER_RECORD signed 16-bit amplitudes
    """
    timestamp: int = 0
    channel_number: int = 0
    sample_frequency: int = 0
    number_of_valid_samples: int = 0
    samples: Tuple[int, ...] = (0,) * SAMPLES_PER_RECORD

    def __post_init__(self):
        if not isinstance(self.samples, tuple):
            object.__setattr__(self, 'samples', tuple(self.samples))
        if len(self.samples) != SAMPLES_PER_RECORD:
            raise ValueError(
                f"Record needs {SAMPLES_PER_RECORD} samples, got {len(self.samples)}"
            )

    @property
    def valid_samples(self) -> Tuple[int, ...]:
        """Samples that carry signal (padding slots removed)."""
        return self.samples[:self.number_of_valid_samples]

    @property
    def sampling_period_us(self) -> int:
        """Integer microsecond period between samples (0 if frequency unknown)."""
        if self.sample_frequency == 0:
            return 0
        return 1_000_000 // self.sample_frequency

    @classmethod
    def decode(cls, raw: bytes) -> 'CscRecord':
        """
        Decode one record frame.

        Args:
            raw: Exactly RECORD_SIZE bytes

        Raises:
            TruncatedFrameError: If raw is shorter than RECORD_SIZE
            ValueError: If raw is longer than RECORD_SIZE
        """
        if len(raw) < RECORD_SIZE:
            raise TruncatedFrameError('record', RECORD_SIZE, len(raw))
        if len(raw) > RECORD_SIZE:
            raise ValueError(f"Record frame too large: {len(raw)} > {RECORD_SIZE}")

        values = _RECORD_STRUCT.unpack(raw)

        return cls(
            timestamp=values[0],
            channel_number=values[1],
            sample_frequency=values[2],
            number_of_valid_samples=values[3],
            samples=values[4:],
        )

    def encode(self) -> bytes:
        """Encode to a RECORD_SIZE frame."""
        return _RECORD_STRUCT.pack(
            self.timestamp,
            self.channel_number,
            self.sample_frequency,
            self.number_of_valid_samples,
            *self.samples,
        )


# Verify struct size at module load
_computed_size = struct.calcsize(RECORD_FORMAT)
assert _computed_size == RECORD_SIZE, \
    f"CscRecord format size mismatch: {_computed_size} != {RECORD_SIZE}"
