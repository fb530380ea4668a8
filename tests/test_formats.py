"""
Tests for the CSC file format.

These tests verify:
1. Header block parsing (key lines, splitting, padding)
2. Record frame layout and encode/decode
3. Eager and streaming readers agree
4. Truncation and trailing data are reported
"""

import dataclasses
import io
import struct

import pytest

from nlx_replay.core.errors import TruncatedFrameError, TrailingDataError, ErrorCode
from nlx_replay.formats.header import CscHeader, HEADER_SIZE
from nlx_replay.formats.record import (
    CscRecord, RECORD_SIZE, RECORD_FORMAT, SAMPLES_PER_RECORD,
)
from nlx_replay.formats.reader import CscFile, CscFileIterator, count_records, frame_layout
from nlx_replay.demo.csc_generator import build_header, write_csc_file

from conftest import make_record


def _header_block(text: bytes) -> bytes:
    return text.ljust(HEADER_SIZE, b'\x00')


class TestCscHeader:
    """Test header block parsing."""

    def test_header_size(self):
        """Header is exactly 16 KiB."""
        assert HEADER_SIZE == 16384

    def test_key_value_lines(self):
        """Dash lines become entries, split at the first space only."""
        block = _header_block(
            b"-Key1 Value1\n"
            b"-Key2 Value2A Value2B\n"
            b"ignored line\n"
        )

        header = CscHeader.decode(block)

        assert header['Key1'] == 'Value1'
        assert header['Key2'] == 'Value2A Value2B'
        assert len(header) == 2
        assert 'ignored' not in header
        assert 'gnored' not in header

    def test_lines_without_space_skipped(self):
        block = _header_block(b"-NoSpace\n-Key Value\n")
        header = CscHeader.decode(block)
        assert dict(header) == {'Key': 'Value'}

    def test_duplicate_keys_last_wins(self):
        block = _header_block(b"-Key first\n-Key second\n")
        assert CscHeader.decode(block)['Key'] == 'second'

    def test_crlf_line_endings(self):
        """Carriage returns are not part of values."""
        block = _header_block(b"######## Neuralynx Data File Header\r\n-FileType CSC\r\n")
        header = CscHeader.decode(block)
        assert header['FileType'] == 'CSC'

    def test_any_byte_value_decodes(self):
        """Every byte maps to one character; decoding never fails."""
        block = bytes(range(256)) * (HEADER_SIZE // 256)
        CscHeader.decode(block)

    def test_high_bytes_map_one_to_one(self):
        block = _header_block(b"-Unit \xb5V\n")
        assert CscHeader.decode(block)['Unit'] == '\xb5V'

    def test_nel_byte_does_not_split_lines(self):
        """0x85 is a line break for str.splitlines() but not here."""
        block = _header_block(b"-Key a\x85b\n")
        assert CscHeader.decode(block)['Key'] == 'a\x85b'

    def test_encode_roundtrip(self):
        original = CscHeader({'FileType': 'CSC', 'SamplingFrequency': '32000'})
        encoded = original.encode()

        assert len(encoded) == HEADER_SIZE
        assert encoded.startswith(b'######## Neuralynx Data File Header')
        assert CscHeader.decode(encoded) == original

    def test_encode_rejects_undecodable_text(self):
        """Entries decode() would split or strip cannot be encoded."""
        for entries in ({'Key': 'value\r'}, {'Key': 'v\x00'}, {'K\r': 'v'}, {'Key': 'a\nb'}):
            with pytest.raises(ValueError, match="cannot be encoded"):
                CscHeader(entries).encode()

    def test_encode_too_large_raises(self):
        header = CscHeader({'Big': 'x' * HEADER_SIZE})
        with pytest.raises(ValueError, match="too large"):
            header.encode()

    def test_typed_accessors(self):
        header = CscHeader({
            'SamplingFrequency': '32000',
            'ADBitVolts': '0.000000030517578125',
            'AcqEntName': 'CSC7 ',
        })
        assert header.sampling_frequency == 32000.0
        assert header.bit_volts == pytest.approx(3.0517578125e-08)
        assert header.channel_name == 'CSC7'

    def test_missing_numeric_value(self):
        header = CscHeader({'SamplingFrequency': 'unknown'})
        assert header.sampling_frequency is None
        assert header.get_float('Missing', 1.5) == 1.5

    def test_header_is_read_only(self):
        header = CscHeader({'Key': 'Value'})
        with pytest.raises(TypeError):
            header['Key'] = 'Other'


class TestCscRecord:
    """Test record frame encode/decode."""

    def test_record_size(self):
        """Record is exactly 1044 bytes."""
        assert RECORD_SIZE == 1044
        assert struct.calcsize(RECORD_FORMAT) == RECORD_SIZE

    def test_field_layout(self):
        """Fields sit at their documented offsets, little-endian."""
        raw = (
            struct.pack('<Q', 0x0102030405060708)
            + struct.pack('<I', 7)
            + struct.pack('<I', 32000)
            + struct.pack('<I', 500)
            + struct.pack('<512h', *range(-256, 256))
        )

        record = CscRecord.decode(raw)

        assert record.timestamp == 0x0102030405060708
        assert record.channel_number == 7
        assert record.sample_frequency == 32000
        assert record.number_of_valid_samples == 500
        assert record.samples[0] == -256
        assert record.samples[-1] == 255
        assert len(record.valid_samples) == 500

    def test_bytes_roundtrip(self):
        """decode -> encode reproduces the input frame."""
        raw = bytes((i * 37) % 256 for i in range(RECORD_SIZE))
        assert CscRecord.decode(raw).encode() == raw

    def test_encode_decode(self):
        record = make_record(timestamp=123456789, channel=2, base=-300)
        assert CscRecord.decode(record.encode()) == record

    def test_short_frame_raises(self):
        with pytest.raises(TruncatedFrameError, match="too small") as exc_info:
            CscRecord.decode(b'\x00' * 100)
        assert exc_info.value.code == ErrorCode.E1002_TRUNCATED_RECORD
        assert exc_info.value.actual == 100

    def test_long_frame_raises(self):
        with pytest.raises(ValueError, match="too large"):
            CscRecord.decode(b'\x00' * (RECORD_SIZE + 1))

    def test_wrong_sample_count_rejected(self):
        with pytest.raises(ValueError):
            CscRecord(samples=(0,) * 10)

    def test_record_is_immutable(self):
        record = make_record()
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.timestamp = 0

    def test_sampling_period(self):
        assert make_record(frequency=32000).sampling_period_us == 31
        assert make_record(frequency=1000).sampling_period_us == 1000
        assert make_record(frequency=0).sampling_period_us == 0

    def test_default_record(self):
        record = CscRecord()
        assert record.timestamp == 0
        assert record.samples == (0,) * SAMPLES_PER_RECORD


class TestEagerReader:
    """Test CscFile.open()."""

    def test_reads_all_records(self, known_file):
        csc = CscFile.open(known_file)

        assert len(csc) == 3
        assert csc.header['AcqEntName'] == 'CSC4'
        assert csc.records[1] == make_record(timestamp=1_016_000, channel=3, base=100)
        assert csc.trailing_bytes == 0

    def test_max_records_caps(self, known_file):
        assert len(CscFile.open(known_file, max_records=2)) == 2
        assert len(CscFile.open(known_file, max_records=0)) == 0

    def test_cap_above_available(self, known_file):
        assert len(CscFile.open(known_file, max_records=100)) == 3

    def test_negative_cap_rejected(self, known_file):
        with pytest.raises(ValueError):
            CscFile.open(known_file, max_records=-1)

    def test_reads_from_stream(self, known_file):
        stream = io.BytesIO(known_file.read_bytes())
        csc = CscFile.open(stream)
        assert len(csc) == 3
        assert not stream.closed

    def test_stream_read_from_current_position(self, known_file):
        """A stream positioned past a prefix is framed from that position."""
        stream = io.BytesIO(b'junk' + known_file.read_bytes())
        stream.seek(4)
        csc = CscFile.open(stream)

        assert len(csc) == 3
        assert csc.trailing_bytes == 0
        assert csc.records == CscFile.open(known_file).records

    def test_header_only_file(self, tmp_path):
        path = tmp_path / 'empty.ncs'
        path.write_bytes(CscHeader({'FileType': 'CSC'}).encode())

        csc = CscFile.open(path)
        assert csc.header['FileType'] == 'CSC'
        assert csc.records == []

    def test_short_header_raises(self, tmp_path):
        path = tmp_path / 'short.ncs'
        path.write_bytes(b'-FileType CSC\n')

        with pytest.raises(TruncatedFrameError) as exc_info:
            CscFile.open(path)
        assert exc_info.value.frame == 'header'
        assert exc_info.value.code == ErrorCode.E1001_TRUNCATED_HEADER

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CscFile.open(tmp_path / 'missing.ncs')

    def test_sample_count(self, known_file):
        assert CscFile.open(known_file).sample_count == 3 * SAMPLES_PER_RECORD


class TestTrailingData:
    """A partial frame after the last record is reported, never silently dropped."""

    @pytest.fixture
    def ragged_file(self, known_file):
        with open(known_file, 'ab') as f:
            f.write(b'\x01' * 100)
        return known_file

    def test_lenient_warns(self, ragged_file, caplog):
        csc = CscFile.open(ragged_file)

        assert len(csc) == 3
        assert csc.trailing_bytes == 100
        assert "100 bytes" in caplog.text

    def test_strict_raises(self, ragged_file):
        with pytest.raises(TrailingDataError) as exc_info:
            CscFile.open(ragged_file, strict=True)
        assert exc_info.value.trailing_bytes == 100

    def test_streaming_strict_raises(self, ragged_file):
        with pytest.raises(TrailingDataError):
            CscFileIterator.open(ragged_file, strict=True)

    def test_streaming_reports_trailing(self, ragged_file):
        _, records = CscFileIterator.open(ragged_file)
        with records:
            assert records.trailing_bytes == 100
            assert len(list(records)) == 3

    def test_frame_layout(self):
        assert frame_layout(HEADER_SIZE) == (0, 0)
        assert frame_layout(HEADER_SIZE + 2 * RECORD_SIZE + 5) == (2, 5)
        with pytest.raises(TruncatedFrameError):
            frame_layout(HEADER_SIZE - 1)


class TestStreamingReader:
    """Test CscFileIterator."""

    def test_header_decoded_up_front(self, known_file):
        header, records = CscFileIterator.open(known_file)
        with records:
            assert header['SamplingFrequency'] == '32000'
            assert records.position == 0
            assert len(records) == 3

    def test_yields_records_in_order(self, known_file):
        _, records = CscFileIterator.open(known_file)
        timestamps = [r.timestamp for r in records]
        assert timestamps == [1_000_000, 1_016_000, 1_032_000]

    def test_cap_bounds_sequence(self, known_file):
        _, records = CscFileIterator.open(known_file, max_records=2)
        assert len(list(records)) == 2

    def test_forward_only(self, known_file):
        _, records = CscFileIterator.open(known_file)
        assert len(list(records)) == 3
        assert list(records) == []

    def test_closes_file_when_exhausted(self, known_file):
        _, records = CscFileIterator.open(known_file)
        list(records)
        assert records._stream.closed

    def test_records_do_not_alias(self, known_file):
        """Each step returns an independent value."""
        _, records = CscFileIterator.open(known_file)
        first = next(records)
        snapshot = first.samples
        next(records)
        assert first.samples == snapshot
        records.close()

    def test_short_read_is_one_failed_step(self, known_file):
        """A stream that shrinks after opening fails the step, then ends."""
        stream = io.BytesIO(known_file.read_bytes())
        _, records = CscFileIterator.open(stream)
        assert next(records).timestamp == 1_000_000

        stream.truncate(HEADER_SIZE + RECORD_SIZE + 10)

        with pytest.raises(TruncatedFrameError) as exc_info:
            next(records)
        assert exc_info.value.frame == 'record'
        assert exc_info.value.actual == 10

        with pytest.raises(StopIteration):
            next(records)

    def test_count_records(self, known_file):
        assert count_records(known_file) == 3

    def test_offset_stream(self, known_file):
        data = b'junk' + known_file.read_bytes()

        stream = io.BytesIO(data)
        stream.seek(4)
        assert count_records(stream) == 3

        stream = io.BytesIO(data)
        stream.seek(4)
        _, records = CscFileIterator.open(stream)
        assert records.trailing_bytes == 0
        assert len(list(records)) == 3


class TestReaderEquivalence:
    """Eager and streaming readers read identical content."""

    @pytest.mark.parametrize("cap", [None, 0, 1, 3, 10])
    def test_same_records(self, csc_file, cap):
        eager = CscFile.open(csc_file, max_records=cap)
        header, records = CscFileIterator.open(csc_file, max_records=cap)
        streamed = list(records)

        assert header == eager.header
        assert len(streamed) == len(eager.records)
        assert streamed == eager.records

    def test_generated_records_reread(self, generator, tmp_path):
        """Writer output decodes back to the generated records."""
        generated = generator.generate(channel=1, count=3, sampling_frequency=16000)
        path = tmp_path / 'gen.ncs'
        write_csc_file(path, build_header(1, 16000), generated)

        assert CscFile.open(path).records == generated
