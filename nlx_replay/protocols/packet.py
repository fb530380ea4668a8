"""
Neuralynx raw data UDP packet.

Layout (little-endian):
    Offset  Size    Field
    0       4       stx                  (i32) Start marker, 2048
    4       4       packet_id            (i32) Sequence id
    8       4       packet_size          (i32) Declared element count (10 + N)
    12      4       timestamp_high       (u32) Upper half of u64 timestamp
    16      4       timestamp_low        (u32) Lower half of u64 timestamp
    20      4       status               (i32) Status flags
    24      4       parallel_input_port  (u32) Digital input port value
    28      40      extras               (10 x i32)
    68      4*N     data                 (N x i32) One sample per channel
    68+4N   4       crc                  (i32) Checksum

The wire format has no length field besides packet_size, so decoding
trusts it to size the body. It is only bounds-checked against
[EXTRAS_LENGTH, MAX_PACKET_SIZE]; nothing verifies it against the datagram
length, and a malformed packet_size can ask for a large body read.
"""

import io
import struct
from dataclasses import dataclass, replace
from typing import BinaryIO, Iterable, List, Sequence, Tuple

from ..core.errors import DeclaredLengthError, TruncatedFrameError


# Start-of-packet marker
STX = 2048

# Number of i32 extras slots, counted in packet_size
EXTRAS_LENGTH = 10

# i=stx, i=packet_id, i=packet_size, I=ts_high, I=ts_low, i=status,
# I=parallel_input_port, 10i=extras
PREFIX_FORMAT = f'<iiiIIiI{EXTRAS_LENGTH}i'
PREFIX_SIZE = 68

CRC_FORMAT = '<i'
CRC_SIZE = 4

ELEMENT_SIZE = 4

# Largest UDP payload over IPv4
MAX_DATAGRAM_SIZE = 65507

# Largest packet_size whose packet still fits in one datagram
MAX_PACKET_SIZE = EXTRAS_LENGTH + (MAX_DATAGRAM_SIZE - PREFIX_SIZE - CRC_SIZE) // ELEMENT_SIZE

_PREFIX_STRUCT = struct.Struct(PREFIX_FORMAT)
_CRC_STRUCT = struct.Struct(CRC_FORMAT)

U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF


def u32(val: int) -> int:
    """Reinterpret an int (e.g. a negative i32) as u32."""
    return val & U32_MAX


def i32(val: int) -> int:
    """Wrap an int into the signed 32-bit range."""
    val &= U32_MAX
    return val - 0x100000000 if val & 0x80000000 else val


def split_timestamp(timestamp: int) -> Tuple[int, int]:
    """Split a u64 timestamp into (high, low) u32 halves."""
    timestamp &= U64_MAX
    return timestamp >> 32, timestamp & U32_MAX


def join_timestamp(high: int, low: int) -> int:
    """Combine u32 halves into a u64 timestamp."""
    return ((high & U32_MAX) << 32) | (low & U32_MAX)


def xor_fold(values: Iterable[int]) -> int:
    """XOR values together as u32."""
    result = 0
    for val in values:
        result ^= val & U32_MAX
    return result


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) < size:
        raise TruncatedFrameError('packet', size, len(data))
    return data


@dataclass(frozen=True)
class NlxPacket:
    """
    One raw data packet.

    The constructor stores fields as given. Use NlxPacket.create() to
    build a packet whose packet_size matches its body.
    """
    stx: int
    packet_id: int
    packet_size: int
    timestamp_high: int
    timestamp_low: int
    status: int
    parallel_input_port: int
    extras: Tuple[int, ...]
    data: Tuple[int, ...]
    crc: int = 0

    def __post_init__(self):
        if not isinstance(self.extras, tuple):
            object.__setattr__(self, 'extras', tuple(self.extras))
        if not isinstance(self.data, tuple):
            object.__setattr__(self, 'data', tuple(self.data))
        if len(self.extras) != EXTRAS_LENGTH:
            raise ValueError(
                f"Packet needs {EXTRAS_LENGTH} extras, got {len(self.extras)}"
            )

    @classmethod
    def create(
        cls,
        packet_id: int,
        timestamp: int,
        data: Sequence[int],
        status: int = 0,
        parallel_input_port: int = 0,
        extras: Sequence[int] = (0,) * EXTRAS_LENGTH,
    ) -> 'NlxPacket':
        """Build a packet with packet_size = EXTRAS_LENGTH + len(data)."""
        high, low = split_timestamp(timestamp)
        return cls(
            stx=STX,
            packet_id=i32(packet_id),
            packet_size=EXTRAS_LENGTH + len(data),
            timestamp_high=high,
            timestamp_low=low,
            status=status,
            parallel_input_port=parallel_input_port,
            extras=tuple(extras),
            data=tuple(data),
        )

    @property
    def timestamp(self) -> int:
        """Full u64 timestamp."""
        return join_timestamp(self.timestamp_high, self.timestamp_low)

    @property
    def wire_size(self) -> int:
        """Encoded size in bytes."""
        return PREFIX_SIZE + ELEMENT_SIZE * len(self.data) + CRC_SIZE

    @property
    def is_consistent(self) -> bool:
        """True when packet_size matches the body length."""
        return self.packet_size == EXTRAS_LENGTH + len(self.data)

    def _fields(self) -> List[int]:
        return [
            self.stx,
            self.packet_id,
            self.packet_size,
            self.timestamp_high,
            self.timestamp_low,
            self.status,
            self.parallel_input_port,
            *self.extras,
            *self.data,
        ]

    def checksum(self) -> int:
        """
        XOR of every field as u32 in declared order, crc included.

        Not applied by encode() or decode().
        """
        return xor_fold(self._fields() + [self.crc])

    def compute_crc(self) -> int:
        """XOR of every field except crc, as a signed i32 for the crc slot."""
        return i32(xor_fold(self._fields()))

    def with_crc(self) -> 'NlxPacket':
        """Copy of this packet with crc filled in."""
        return replace(self, crc=self.compute_crc())

    def verify(self) -> bool:
        """True when crc matches the XOR of the other fields."""
        return self.checksum() == 0

    def validate(self) -> List[str]:
        """
        Check packet fields.

        Returns:
            List of validation error messages (empty if valid).
        """
        errors = []

        if self.stx != STX:
            errors.append(f"Invalid stx: {self.stx} (expected {STX})")

        if not self.is_consistent:
            errors.append(
                f"packet_size {self.packet_size} does not match "
                f"{EXTRAS_LENGTH} + {len(self.data)} data elements"
            )

        if self.crc != 0 and not self.verify():
            errors.append(f"CRC mismatch: 0x{u32(self.crc):08X}")

        return errors

    def encode(self) -> bytes:
        """Encode to wire bytes."""
        return b''.join((
            _PREFIX_STRUCT.pack(
                self.stx,
                self.packet_id,
                self.packet_size,
                self.timestamp_high,
                self.timestamp_low,
                self.status,
                self.parallel_input_port,
                *self.extras,
            ),
            struct.pack(f'<{len(self.data)}i', *self.data),
            _CRC_STRUCT.pack(self.crc),
        ))

    @classmethod
    def read(cls, stream: BinaryIO, max_size: int = MAX_PACKET_SIZE) -> 'NlxPacket':
        """
        Read one packet from a binary stream.

        Args:
            stream: Stream positioned at a packet
            max_size: Largest packet_size accepted

        Raises:
            TruncatedFrameError: If the stream ends inside the packet
            DeclaredLengthError: If packet_size is below EXTRAS_LENGTH or
                above max_size
        """
        prefix = _PREFIX_STRUCT.unpack(_read_exact(stream, PREFIX_SIZE))
        packet_size = prefix[2]

        if not EXTRAS_LENGTH <= packet_size <= max_size:
            raise DeclaredLengthError(packet_size, EXTRAS_LENGTH, max_size)

        count = packet_size - EXTRAS_LENGTH
        data = struct.unpack(f'<{count}i', _read_exact(stream, count * ELEMENT_SIZE))
        (crc,) = _CRC_STRUCT.unpack(_read_exact(stream, CRC_SIZE))

        return cls(
            stx=prefix[0],
            packet_id=prefix[1],
            packet_size=packet_size,
            timestamp_high=prefix[3],
            timestamp_low=prefix[4],
            status=prefix[5],
            parallel_input_port=prefix[6],
            extras=prefix[7:],
            data=data,
            crc=crc,
        )

    @classmethod
    def decode(cls, data: bytes, max_size: int = MAX_PACKET_SIZE) -> 'NlxPacket':
        """Decode one packet from the start of data. Extra bytes are ignored."""
        return cls.read(io.BytesIO(data), max_size=max_size)

    @classmethod
    def decode_datagram(cls, data: bytes) -> 'NlxPacket':
        """
        Decode a packet that fills one datagram, sizing the body from the
        datagram length instead of packet_size.

        packet_size is kept as received, so is_consistent tells whether the
        sender declared the body correctly.
        """
        if len(data) < PREFIX_SIZE + CRC_SIZE:
            raise TruncatedFrameError('packet', PREFIX_SIZE + CRC_SIZE, len(data))

        count = (len(data) - PREFIX_SIZE - CRC_SIZE) // ELEMENT_SIZE
        body_end = PREFIX_SIZE + count * ELEMENT_SIZE

        prefix = _PREFIX_STRUCT.unpack_from(data, 0)
        body = struct.unpack_from(f'<{count}i', data, PREFIX_SIZE)
        (crc,) = _CRC_STRUCT.unpack_from(data, body_end)

        return cls(
            stx=prefix[0],
            packet_id=prefix[1],
            packet_size=prefix[2],
            timestamp_high=prefix[3],
            timestamp_low=prefix[4],
            status=prefix[5],
            parallel_input_port=prefix[6],
            extras=prefix[7:],
            data=body,
            crc=crc,
        )


# Verify struct sizes at module load
assert struct.calcsize(PREFIX_FORMAT) == PREFIX_SIZE, \
    f"Packet prefix size mismatch: {struct.calcsize(PREFIX_FORMAT)} != {PREFIX_SIZE}"
assert struct.calcsize(CRC_FORMAT) == CRC_SIZE
