"""
Tests for replay: runner, UDP sender and collector.

These tests verify:
1. Channel files become lock-step packets at the sampling period
2. Failures propagate and stop the replay
3. Packets survive a UDP loopback round trip
4. The collector counts gaps, bad checksums and malformed packets
"""

import dataclasses
import functools
import socket

import pytest

from nlx_replay.collectors.udp_collector import UDPCollector
from nlx_replay.config.schema import ReplaySettings
from nlx_replay.core.errors import SampleCountMismatchError
from nlx_replay.demo.csc_generator import build_header, write_csc_file
from nlx_replay.formats.header import CscHeader
from nlx_replay.formats.reader import CscFile
from nlx_replay.protocols.packet import NlxPacket, STX, EXTRAS_LENGTH, i32
from nlx_replay.protocols.transform import records_to_packets
from nlx_replay.replay.runner import ReplayRunner
from nlx_replay.replay.scheduler import run_paced
from nlx_replay.replay.sender import UDPSender

from conftest import make_record


@pytest.fixture
def paced(fake_clock):
    """run_paced bound to the fake clock."""
    return functools.partial(run_paced, clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(('127.0.0.1', 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


class TestReplayRunner:
    """Test ReplayRunner.run()."""

    def test_sends_every_sample(self, csc_pair, paced):
        sent = []
        result = ReplayRunner(sent.append, run=paced).run(csc_pair)

        assert result.channels == 2
        assert result.records_per_channel == 4
        assert result.packets_sent == 4 * 512
        assert len(sent) == 4 * 512
        assert result.next_packet_id == 4 * 512

    def test_packets_match_transform(self, csc_pair, paced):
        """Replay output equals converting each record set directly."""
        sent = []
        ReplayRunner(sent.append, run=paced).run(csc_pair)

        first, second = (CscFile.open(p).records for p in csc_pair)
        expected = []
        for i, records in enumerate(zip(first, second)):
            expected.extend(records_to_packets(records, first_id=i * 512))

        assert sent == expected

    def test_period_from_sampling_frequency(self, csc_pair, paced, fake_clock):
        result = ReplayRunner(lambda p: None, run=paced).run(csc_pair)

        assert result.sampling_frequency == 32000
        assert result.period_s == pytest.approx(31e-6)
        assert result.pacing.items == 2048
        assert result.pacing.elapsed == pytest.approx(2048 * 31e-6)

    def test_speed_scales_period(self, csc_pair, paced):
        settings = ReplaySettings(speed=2.0)
        result = ReplayRunner(lambda p: None, settings, run=paced).run(csc_pair)
        assert result.period_s == pytest.approx(15.5e-6)

    def test_settings_applied(self, csc_pair, paced):
        sent = []
        settings = ReplaySettings(
            max_records=1,
            first_packet_id=1000,
            packet_size='auto',
            fill_checksum=True,
        )
        result = ReplayRunner(sent.append, settings, run=paced).run(csc_pair)

        assert result.packets_sent == 512
        assert sent[0].packet_id == 1000
        assert sent[0].packet_size == EXTRAS_LENGTH + 2
        assert all(p.verify() for p in sent)
        assert result.next_packet_id == 1512

    def test_next_packet_id_wraps(self, csc_file, paced):
        """Reported next id wraps like the packet ids themselves."""
        sent = []
        settings = ReplaySettings(max_records=1, first_packet_id=2**31 - 1)
        result = ReplayRunner(sent.append, settings, run=paced).run([csc_file])

        assert sent[1].packet_id == -2**31
        assert result.next_packet_id == -2**31 + 511
        assert result.next_packet_id == i32(sent[-1].packet_id + 1)

    def test_unequal_record_counts(self, tmp_path, paced, caplog):
        """Replay stops at the shortest channel and warns."""
        paths = [tmp_path / 'a.ncs', tmp_path / 'b.ncs']
        write_csc_file(paths[0], build_header(0, 32000), [make_record(), make_record()])
        write_csc_file(paths[1], build_header(1, 32000), [make_record()])

        sent = []
        result = ReplayRunner(sent.append, run=paced).run(paths)

        assert len(sent) == 512
        assert result.records_per_channel == 1
        assert "different record counts" in caplog.text

    def test_sample_count_mismatch_propagates(self, tmp_path, paced):
        paths = [tmp_path / 'a.ncs', tmp_path / 'b.ncs']
        write_csc_file(paths[0], build_header(0, 32000), [make_record(valid=512)])
        write_csc_file(paths[1], build_header(1, 32000), [make_record(valid=511)])

        sent = []
        with pytest.raises(SampleCountMismatchError) as exc_info:
            ReplayRunner(sent.append, run=paced).run(paths)

        assert exc_info.value.channel_index == 1
        assert sent == []

    def test_send_failure_aborts(self, csc_pair, paced):
        sent = []

        def send(packet):
            if len(sent) == 3:
                raise OSError("network unreachable")
            sent.append(packet)

        with pytest.raises(OSError):
            ReplayRunner(send, run=paced).run(csc_pair)

        assert len(sent) == 3

    def test_empty_files(self, tmp_path, paced):
        path = tmp_path / 'empty.ncs'
        path.write_bytes(CscHeader({'FileType': 'CSC'}).encode())

        result = ReplayRunner(lambda p: None, run=paced).run([path])

        assert result.packets_sent == 0
        assert result.pacing is None

    def test_no_files(self):
        with pytest.raises(ValueError):
            ReplayRunner(lambda p: None).run([])

    def test_result_to_dict(self, csc_pair, paced):
        result = ReplayRunner(lambda p: None, ReplaySettings(max_records=1), run=paced).run(csc_pair)
        d = result.to_dict()

        assert d['packets_sent'] == 512
        assert d['pacing']['items'] == 512


class TestUDPSender:
    """Test UDPSender over loopback."""

    def test_send_packet(self, receiver):
        packet = NlxPacket.create(packet_id=1, timestamp=123, data=[1, -2, 3])

        with UDPSender('127.0.0.1', receiver.getsockname()[1]) as sender:
            sent = sender.send(packet)
            assert sender.packets_sent == 1
            assert sender.bytes_sent == sent

        data, _ = receiver.recvfrom(65535)
        assert NlxPacket.decode(data) == packet

    def test_closed_sender_raises(self):
        sender = UDPSender('127.0.0.1', 9)
        sender.close()
        with pytest.raises(RuntimeError):
            sender.send_bytes(b'x')

    def test_multicast_detection(self):
        assert UDPSender._is_multicast('239.1.2.3')
        assert not UDPSender._is_multicast('127.0.0.1')
        assert not UDPSender._is_multicast('localhost')

    def test_replay_over_loopback(self, receiver, tmp_path, paced):
        """Datagrams from a replay decode back to the replayed packets."""
        path = tmp_path / 'one.ncs'
        write_csc_file(path, build_header(0, 32000), [make_record(valid=20)])

        sent = []
        collector = UDPCollector()
        with UDPSender('127.0.0.1', receiver.getsockname()[1]) as sender:
            def send(packet):
                sent.append(packet)
                sender.send(packet)

            ReplayRunner(send, run=paced).run([path])

        for _ in range(20):
            data, _ = receiver.recvfrom(65535)
            collector.handle_datagram(data)

        stats = collector.stats()
        assert stats['packets_received'] == 20
        assert stats['id_gaps'] == 0
        assert stats['samples_received'] == 20
        # Default declared size 1044 does not match a one-channel body
        assert stats['packets_size_mismatch'] == 20
        assert stats['last_packet_id'] == sent[-1].packet_id


class TestUDPCollector:
    """Test UDPCollector.handle_datagram()."""

    @pytest.fixture
    def collector(self):
        return UDPCollector(port=0)

    def _packet(self, packet_id, data=(1, 2)):
        return NlxPacket.create(packet_id=packet_id, timestamp=0, data=data)

    def test_accepts_packet(self, collector):
        packet = self._packet(0)
        assert collector.handle_datagram(packet.encode()) == packet

        stats = collector.stats()
        assert stats['packets_received'] == 1
        assert stats['packets_invalid'] == 0
        assert stats['samples_received'] == 2

    def test_callback(self):
        received = []
        collector = UDPCollector(on_packet=received.append)
        collector.handle_datagram(self._packet(4).encode())
        assert received[0].packet_id == 4

    def test_gap_detection(self):
        gaps = []
        collector = UDPCollector(on_gap=lambda expected, got: gaps.append((expected, got)))

        for packet_id in (0, 1, 4, 5):
            collector.handle_datagram(self._packet(packet_id).encode())

        assert collector.id_gaps == 1
        assert collector.packets_missing == 2
        assert gaps == [(2, 4)]

    def test_id_wrap_is_not_gap(self, collector):
        collector.handle_datagram(self._packet(2**31 - 1).encode())
        collector.handle_datagram(self._packet(-2**31).encode())
        assert collector.id_gaps == 0

    def test_checksum_verified_when_filled(self, collector):
        good = self._packet(0).with_crc()
        bad = dataclasses.replace(good, crc=good.crc ^ 1)

        assert collector.handle_datagram(good.encode()) is not None
        assert collector.handle_datagram(bad.encode()) is None
        assert collector.packets_crc_failed == 1

    def test_invalid_stx(self, collector):
        packet = NlxPacket(0, 0, 12, 0, 0, 0, 0, (0,) * EXTRAS_LENGTH, (1, 2))
        assert collector.handle_datagram(packet.encode()) is None
        assert collector.packets_invalid == 1

    def test_truncated(self, collector):
        assert collector.handle_datagram(b'\x00' * 20) is None
        assert collector.packets_invalid == 1

    def test_trust_declared_size(self):
        """Declared-size decoding rejects packets with a fixed large size."""
        legacy = NlxPacket(STX, 0, 1044, 0, 0, 0, 0, (0,) * EXTRAS_LENGTH, (1, 2))

        lenient = UDPCollector()
        assert lenient.handle_datagram(legacy.encode()).data == (1, 2)
        assert lenient.packets_size_mismatch == 1

        strict = UDPCollector(trust_declared_size=True)
        assert strict.handle_datagram(legacy.encode()) is None
        assert strict.packets_invalid == 1
