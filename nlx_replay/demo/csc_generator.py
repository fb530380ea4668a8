"""
Generate synthetic CSC files.

Signals are synthetic but shaped like real continuous recordings:
- A sine carrier per channel (frequency and phase vary by channel)
- Gaussian noise
- Values clipped to the int16 range

Record timestamps advance by the duration of one full record, so the
files stream exactly like an acquisition system's output.
"""

import math
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..formats.header import CscHeader
from ..formats.record import CscRecord, SAMPLES_PER_RECORD, RECORD_SIZE

I16_MIN = -32768
I16_MAX = 32767

# Volts per ADC bit written to generated headers
DEFAULT_BIT_VOLTS = 3.0517578125e-08


@dataclass
class SignalProfile:
    """Shape of one synthetic channel."""
    carrier_hz: float = 8.0
    amplitude: float = 2000.0
    noise_std: float = 150.0
    phase: float = 0.0


def build_header(
    channel: int,
    sampling_frequency: int,
    extra: Optional[Dict[str, str]] = None,
) -> CscHeader:
    """Header with the keys acquisition software writes for a CSC channel."""
    fields = {
        'FileType': 'CSC',
        'RecordSize': str(RECORD_SIZE),
        'AcqEntName': f'CSC{channel + 1}',
        'ADChannel': str(channel),
        'SamplingFrequency': str(sampling_frequency),
        'ADBitVolts': f'{DEFAULT_BIT_VOLTS:.20f}'.rstrip('0'),
        'ADMaxValue': str(I16_MAX),
        'InputInverted': 'False',
    }
    fields.update(extra or {})
    return CscHeader(fields)


def write_csc_file(path: Path, header: CscHeader, records: Iterable[CscRecord]) -> int:
    """
    Write a CSC file.

    Returns:
        Number of records written
    """
    count = 0
    with open(path, 'wb') as f:
        f.write(header.encode())
        for record in records:
            f.write(record.encode())
            count += 1
    return count


class CscGenerator:
    """
    Generate synthetic channel records.

    Usage:
        gen = CscGenerator(seed=7)
        paths = gen.write_files(Path("out"), channels=2, records=10)
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self.rng = random.Random(seed)

    def profile_for(self, channel: int) -> SignalProfile:
        """Deterministic profile per channel."""
        return SignalProfile(
            carrier_hz=6.0 + 2.0 * channel,
            amplitude=1500.0 + 250.0 * channel,
            phase=channel * math.pi / 4,
        )

    def generate(
        self,
        channel: int,
        count: int,
        sampling_frequency: int = 32000,
        start_timestamp: int = 0,
        profile: Optional[SignalProfile] = None,
        valid_samples: int = SAMPLES_PER_RECORD,
    ) -> List[CscRecord]:
        """Generate count consecutive records for one channel."""
        if sampling_frequency <= 0:
            raise ValueError(f"Invalid sampling frequency: {sampling_frequency}")

        profile = profile or self.profile_for(channel)
        record_us = SAMPLES_PER_RECORD * 1_000_000 // sampling_frequency

        records = []
        for r in range(count):
            samples = []
            for s in range(SAMPLES_PER_RECORD):
                if s >= valid_samples:
                    samples.append(0)
                    continue
                t = (r * SAMPLES_PER_RECORD + s) / sampling_frequency
                value = profile.amplitude * math.sin(
                    2 * math.pi * profile.carrier_hz * t + profile.phase
                )
                value += self.rng.gauss(0, profile.noise_std)
                samples.append(max(I16_MIN, min(I16_MAX, int(round(value)))))

            records.append(CscRecord(
                timestamp=start_timestamp + r * record_us,
                channel_number=channel,
                sample_frequency=sampling_frequency,
                number_of_valid_samples=valid_samples,
                samples=tuple(samples),
            ))

        return records

    def write_files(
        self,
        output_dir: Path,
        channels: int = 2,
        records: int = 10,
        sampling_frequency: int = 32000,
        start_timestamp: int = 0,
    ) -> List[Path]:
        """Write one CSC file per channel. Returns the paths written."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = []
        for channel in range(channels):
            path = output_dir / f'CSC{channel + 1}.ncs'
            write_csc_file(
                path,
                build_header(channel, sampling_frequency),
                self.generate(channel, records, sampling_frequency, start_timestamp),
            )
            paths.append(path)

        return paths
