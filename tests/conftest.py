"""Pytest fixtures shared by the nlx-replay tests."""

from pathlib import Path
from typing import List

import pytest

from nlx_replay.demo.csc_generator import CscGenerator, build_header, write_csc_file
from nlx_replay.formats.record import CscRecord, SAMPLES_PER_RECORD


def make_record(
    timestamp: int = 1_000_000,
    channel: int = 0,
    frequency: int = 32000,
    valid: int = SAMPLES_PER_RECORD,
    base: int = 0,
) -> CscRecord:
    """Record whose sample i is base + i (wrapped into int16)."""
    samples = tuple(((base + i + 32768) % 65536) - 32768 for i in range(SAMPLES_PER_RECORD))
    return CscRecord(
        timestamp=timestamp,
        channel_number=channel,
        sample_frequency=frequency,
        number_of_valid_samples=valid,
        samples=samples,
    )


class FakeClock:
    """Deterministic clock/sleep pair for pacing tests."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def generator() -> CscGenerator:
    return CscGenerator(seed=1234)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def csc_dir(tmp_path: Path, generator: CscGenerator) -> Path:
    """Two channel files with 4 records each at 32 kHz."""
    generator.write_files(tmp_path, channels=2, records=4, sampling_frequency=32000,
                          start_timestamp=5_000_000)
    return tmp_path


@pytest.fixture
def csc_file(csc_dir: Path) -> Path:
    return csc_dir / 'CSC1.ncs'


@pytest.fixture
def csc_pair(csc_dir: Path) -> List[Path]:
    return [csc_dir / 'CSC1.ncs', csc_dir / 'CSC2.ncs']


@pytest.fixture
def known_file(tmp_path: Path) -> Path:
    """File with 3 records built by make_record, so contents are predictable."""
    path = tmp_path / 'known.ncs'
    records = [
        make_record(timestamp=1_000_000 + 16_000 * i, channel=3, base=100 * i)
        for i in range(3)
    ]
    write_csc_file(path, build_header(3, 32000), records)
    return path
