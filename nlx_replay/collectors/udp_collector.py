"""
UDP collector for raw data packets.

Receives the datagrams a replay emits and decodes them, for loopback
verification and for downstream tools that want decoded packets.

Each datagram holds exactly one packet (see protocols.packet for the
layout). Packets whose crc is non-zero are checked against the XOR of
their fields; a zero crc means the sender did not fill it.
"""

import logging
import socket
import threading
from typing import Callable, Optional

from ..core.errors import NlxError
from ..protocols.packet import NlxPacket, STX, i32

logger = logging.getLogger(__name__)


class UDPCollector:
    """
    Collect raw data packets over UDP.

    Example:
        def on_packet(packet):
            print(packet.packet_id, packet.data)

        collector = UDPCollector(port=26090, on_packet=on_packet)
        collector.start()
        # ... later ...
        collector.stop()
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 26090,
        on_packet: Optional[Callable[[NlxPacket], None]] = None,
        on_gap: Optional[Callable[[int, int], None]] = None,
        trust_declared_size: bool = False,
    ):
        self.host = host
        self.port = port
        self.on_packet = on_packet
        self.on_gap = on_gap
        self.trust_declared_size = trust_declared_size

        self.socket: Optional[socket.socket] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self.packets_received = 0
        self.packets_invalid = 0
        self.packets_crc_failed = 0
        self.packets_size_mismatch = 0
        self.id_gaps = 0
        self.packets_missing = 0
        self.samples_received = 0
        self.last_packet_id: Optional[int] = None

    def start(self) -> None:
        """Start the collector."""
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((self.host, self.port))
        self.socket.settimeout(1.0)

        self._running = True
        self._thread = threading.Thread(target=self._receive_loop, daemon=True)
        self._thread.start()

        logger.info(f"UDP collector listening on {self.host}:{self.port}")

    def stop(self) -> None:
        """Stop the collector."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
        if self.socket:
            self.socket.close()
        logger.info("UDP collector stopped")

    def _receive_loop(self) -> None:
        """Main receive loop."""
        while self._running:
            try:
                data, addr = self.socket.recvfrom(65535)
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Receive error: {e}")
                break
            self.handle_datagram(data)

    def handle_datagram(self, data: bytes) -> Optional[NlxPacket]:
        """
        Decode and account for one datagram.

        Returns:
            The decoded packet, or None if it was rejected
        """
        self.packets_received += 1

        try:
            if self.trust_declared_size:
                packet = NlxPacket.decode(data)
            else:
                packet = NlxPacket.decode_datagram(data)
        except NlxError as e:
            logger.warning(f"Failed to decode packet: {e}")
            self.packets_invalid += 1
            return None

        if packet.stx != STX:
            logger.warning(f"Invalid stx: {packet.stx}")
            self.packets_invalid += 1
            return None

        if packet.crc != 0 and not packet.verify():
            logger.warning(f"CRC mismatch on packet {packet.packet_id}")
            self.packets_crc_failed += 1
            return None

        if not packet.is_consistent or len(data) != packet.wire_size:
            self.packets_size_mismatch += 1
            logger.debug(
                f"Packet {packet.packet_id}: declared size {packet.packet_size}, "
                f"{len(packet.data)} data elements in {len(data)} bytes"
            )

        self._track_id(packet.packet_id)
        self.samples_received += len(packet.data)

        if self.on_packet:
            self.on_packet(packet)

        return packet

    def _track_id(self, packet_id: int) -> None:
        if self.last_packet_id is not None:
            expected = i32(self.last_packet_id + 1)
            if packet_id != expected:
                self.id_gaps += 1
                missing = i32(packet_id - expected)
                if missing > 0:
                    self.packets_missing += missing
                if self.on_gap:
                    self.on_gap(expected, packet_id)
        self.last_packet_id = packet_id

    def stats(self) -> dict:
        """Get collector statistics."""
        return {
            'packets_received': self.packets_received,
            'packets_invalid': self.packets_invalid,
            'packets_crc_failed': self.packets_crc_failed,
            'packets_size_mismatch': self.packets_size_mismatch,
            'id_gaps': self.id_gaps,
            'packets_missing': self.packets_missing,
            'samples_received': self.samples_received,
            'last_packet_id': self.last_packet_id,
        }
