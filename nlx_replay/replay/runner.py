"""
Replay CSC files as a paced raw data packet stream.

Orchestrates the complete replay workflow:
1. Open every channel file for streaming
2. Read records in lock-step, one record per channel per step
3. Convert each record set into per-sample packets
4. Hand packets to a send function at the sampling period

Usage:
    with UDPSender("127.0.0.1", 26090) as sender:
        runner = ReplayRunner(sender.send, ReplaySettings(max_records=100))
        result = runner.run([Path("CSC1.ncs"), Path("CSC2.ncs")])
    print(result.to_dict())
"""

import itertools
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..config.schema import ReplaySettings
from ..formats.header import CscHeader
from ..formats.reader import CscFileIterator
from ..protocols.packet import NlxPacket, i32
from ..protocols.transform import stream_packets
from .scheduler import PacingStats, run_paced

logger = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    """Summary of a replay run."""
    files: List[str] = field(default_factory=list)
    channels: int = 0
    records_per_channel: int = 0
    sampling_frequency: int = 0
    period_s: float = 0.0
    packets_sent: int = 0
    next_packet_id: int = 0
    pacing: Optional[PacingStats] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'files': self.files,
            'channels': self.channels,
            'records_per_channel': self.records_per_channel,
            'sampling_frequency': self.sampling_frequency,
            'period_s': self.period_s,
            'packets_sent': self.packets_sent,
            'next_packet_id': self.next_packet_id,
            'pacing': self.pacing.to_dict() if self.pacing else None,
        }


class ReplayRunner:
    """Stream channel files through the packet transformer at real time."""

    def __init__(
        self,
        send: Callable[[NlxPacket], object],
        settings: Optional[ReplaySettings] = None,
        strict: bool = False,
        run: Callable = run_paced,
    ):
        """
        Args:
            send: Transport for one packet (e.g. UDPSender.send)
            settings: Replay settings (defaults if None)
            strict: Reject files with a trailing partial record
            run: Pacing function with run_paced()'s signature
        """
        self.send = send
        self.settings = settings or ReplaySettings()
        self.strict = strict
        self._run = run

    def open_channels(
        self, paths: Sequence[Path], stack: ExitStack
    ) -> Tuple[List[CscHeader], List[CscFileIterator]]:
        """Open every file for streaming, registering cleanup on stack."""
        headers = []
        iterators = []
        for path in paths:
            header, records = CscFileIterator.open(
                path, self.settings.max_records, strict=self.strict
            )
            stack.enter_context(records)
            headers.append(header)
            iterators.append(records)

        counts = {len(it) for it in iterators}
        if len(counts) > 1:
            logger.warning(
                f"Channel files have different record counts {sorted(counts)}; "
                f"replay stops after {min(counts)} records"
            )

        frequencies = {h.sampling_frequency for h in headers}
        if len(frequencies) > 1:
            logger.warning(
                f"Channel headers disagree on SamplingFrequency: {sorted(frequencies, key=str)}"
            )

        return headers, iterators

    def run(self, paths: Sequence[Path]) -> ReplayResult:
        """
        Replay files, one channel per file, in the given order.

        Raises:
            ValueError: If no paths are given
            NlxError: On any decode or transform failure
            OSError: On file or transport failure
        """
        if not paths:
            raise ValueError("at least one CSC file is required")

        settings = self.settings
        result = ReplayResult(
            files=[str(p) for p in paths],
            channels=len(paths),
            next_packet_id=settings.first_packet_id,
        )

        with ExitStack() as stack:
            _, iterators = self.open_channels(paths, stack)
            result.records_per_channel = min(len(it) for it in iterators)

            # Pull the first record set to learn the sampling period
            first = [next(it, None) for it in iterators]
            if any(record is None for record in first):
                logger.warning("No records to replay")
                return result

            result.sampling_frequency = first[0].sample_frequency
            result.period_s = first[0].sampling_period_us / 1e6 / settings.speed

            channels = [
                itertools.chain([record], it) for record, it in zip(first, iterators)
            ]
            packets = stream_packets(
                channels,
                first_id=settings.first_packet_id,
                packet_size=settings.declared_packet_size,
                fill_crc=settings.fill_checksum,
            )

            def _send(packet: NlxPacket) -> None:
                self.send(packet)
                result.packets_sent += 1

            logger.info(
                f"Replaying {result.channels} channels at "
                f"{result.sampling_frequency} Hz (period {result.period_s * 1e6:.1f} us)"
            )
            try:
                result.pacing = self._run(result.period_s, packets, _send)
            finally:
                result.next_packet_id = i32(settings.first_packet_id + result.packets_sent)

        logger.info(f"Replay finished: {result.packets_sent} packets sent")
        return result
