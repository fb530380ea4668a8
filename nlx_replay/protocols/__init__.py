"""
Raw data packet codec and CSC-to-packet conversion.

Usage:
    from nlx_replay.protocols import NlxPacket, records_to_packets

    packets = records_to_packets([ch1_record, ch2_record], packet_size=None)
    wire = packets[0].encode()
    assert NlxPacket.decode(wire) == packets[0]
"""

from .packet import (
    NlxPacket,
    STX,
    EXTRAS_LENGTH,
    PREFIX_SIZE,
    MAX_PACKET_SIZE,
    split_timestamp,
    join_timestamp,
)
from .transform import (
    LEGACY_PACKET_SIZE,
    check_records,
    iter_packets,
    records_to_packets,
    stream_packets,
)

__all__ = [
    'NlxPacket',
    'STX',
    'EXTRAS_LENGTH',
    'PREFIX_SIZE',
    'MAX_PACKET_SIZE',
    'split_timestamp',
    'join_timestamp',
    'LEGACY_PACKET_SIZE',
    'check_records',
    'iter_packets',
    'records_to_packets',
    'stream_packets',
]
