"""
Turn synchronized per-channel CSC records into raw data packets.

One record per channel, all from the same record index, become one packet
per sample: packet i carries sample i of every channel, in channel order.

    records = [ch1_record, ch2_record]     # 512 valid samples each
    packets = records_to_packets(records, first_id=0)
    len(packets)          # 512
    packets[3].data       # (ch1_record.samples[3], ch2_record.samples[3])

Timestamps advance by the integer period 1_000_000 // frequency from the
first record's timestamp. Fractional periods are dropped, not accumulated.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Sequence

from ..core.errors import SampleCountMismatchError, TransformError
from ..formats.record import CscRecord, SAMPLES_PER_RECORD
from .packet import NlxPacket, EXTRAS_LENGTH, STX, i32, split_timestamp

logger = logging.getLogger(__name__)


# packet_size written by the acquisition system this replays, independent of
# the number of channels in the body
LEGACY_PACKET_SIZE = 1044

_ZERO_EXTRAS = (0,) * EXTRAS_LENGTH


def check_records(records: Sequence[CscRecord]) -> int:
    """
    Check that channel records can share packets.

    Returns:
        The common valid-sample count

    Raises:
        TransformError: No records, zero frequency, or a valid count above
            the slot capacity
        SampleCountMismatchError: A channel's valid count differs from
            channel 0's
    """
    if not records:
        raise TransformError("at least one channel record is required")

    expected = records[0].number_of_valid_samples
    for index, record in enumerate(records):
        if record.number_of_valid_samples != expected:
            raise SampleCountMismatchError(
                index, record.number_of_valid_samples, expected
            )

    if expected > SAMPLES_PER_RECORD:
        raise TransformError(
            f"valid sample count {expected} exceeds {SAMPLES_PER_RECORD} slots",
            {'count': expected, 'capacity': SAMPLES_PER_RECORD},
        )

    if records[0].sample_frequency == 0:
        raise TransformError(
            "sampling frequency is 0",
            {'channel_number': records[0].channel_number},
        )

    return expected


def iter_packets(
    records: Sequence[CscRecord],
    first_id: int = 0,
    packet_size: Optional[int] = LEGACY_PACKET_SIZE,
    fill_crc: bool = False,
) -> Iterator[NlxPacket]:
    """
    Yield one packet per valid sample index across records.

    Records are validated before the first packet is produced.

    Args:
        records: One record per channel, same record index
        first_id: packet_id of the first packet
        packet_size: Declared size for every packet, or None to declare
            EXTRAS_LENGTH + len(records)
        fill_crc: Fill the crc field instead of leaving it 0
    """
    sample_count = check_records(records)

    first = records[0]
    period = first.sampling_period_us
    declared = EXTRAS_LENGTH + len(records) if packet_size is None else packet_size

    def _generate() -> Iterator[NlxPacket]:
        for i in range(sample_count):
            high, low = split_timestamp(first.timestamp + i * period)
            packet = NlxPacket(
                stx=STX,
                packet_id=i32(first_id + i),
                packet_size=declared,
                timestamp_high=high,
                timestamp_low=low,
                status=0,
                parallel_input_port=0,
                extras=_ZERO_EXTRAS,
                data=tuple(record.samples[i] for record in records),
            )
            yield packet.with_crc() if fill_crc else packet

    return _generate()


def records_to_packets(
    records: Sequence[CscRecord],
    first_id: int = 0,
    packet_size: Optional[int] = LEGACY_PACKET_SIZE,
    fill_crc: bool = False,
) -> List[NlxPacket]:
    """Build every packet for one set of channel records. See iter_packets()."""
    return list(iter_packets(records, first_id, packet_size, fill_crc))


def stream_packets(
    channels: Sequence[Iterable[CscRecord]],
    first_id: int = 0,
    packet_size: Optional[int] = LEGACY_PACKET_SIZE,
    fill_crc: bool = False,
) -> Iterator[NlxPacket]:
    """
    Packets for whole record streams, one stream per channel.

    Streams are consumed in lock-step; output stops when the shortest ends.
    packet_id keeps counting across record boundaries.
    """
    packet_id = first_id
    generation = 0

    for records in zip(*channels):
        logger.debug(f"Record set {generation}: {len(records)} channels")
        for packet in iter_packets(records, packet_id, packet_size, fill_crc):
            yield packet
            packet_id += 1
        generation += 1
