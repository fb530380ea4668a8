"""
UDP transport for replayed packets.

Usage:
    with UDPSender(host="127.0.0.1", port=26090) as sender:
        sender.send(packet)
"""

import logging
import socket
from typing import Optional, Tuple

from ..protocols.packet import NlxPacket

logger = logging.getLogger(__name__)


class UDPSender:
    """Send encoded packets as datagrams to one destination."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 26090,
        ttl: int = 1,
        sock: Optional[socket.socket] = None,
    ):
        """
        Args:
            host: Destination address (unicast or multicast)
            port: Destination port
            ttl: Multicast TTL, applied only to multicast destinations
            sock: Pre-built socket, mostly for tests
        """
        self.host = host
        self.port = port
        self.ttl = ttl

        # Statistics
        self.packets_sent = 0
        self.bytes_sent = 0

        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            if self._is_multicast(host):
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl)
        self.socket: Optional[socket.socket] = sock

        logger.info(f"UDP sender targeting {host}:{port}")

    @staticmethod
    def _is_multicast(addr: str) -> bool:
        """Check if address is in multicast range."""
        try:
            parts = [int(p) for p in addr.split(".")]
            return 224 <= parts[0] <= 239
        except (ValueError, IndexError):
            return False

    @property
    def destination(self) -> Tuple[str, int]:
        return (self.host, self.port)

    def send(self, packet: NlxPacket) -> int:
        """Encode and send one packet. Returns bytes sent."""
        return self.send_bytes(packet.encode())

    def send_bytes(self, data: bytes) -> int:
        """Send raw datagram bytes. Returns bytes sent."""
        if self.socket is None:
            raise RuntimeError("UDPSender is closed")

        sent = self.socket.sendto(data, self.destination)
        self.packets_sent += 1
        self.bytes_sent += sent
        return sent

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close()
            self.socket = None
            logger.info(f"UDP sender closed after {self.packets_sent} packets")

    def __enter__(self) -> 'UDPSender':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def stats(self) -> dict:
        return {
            'destination': f"{self.host}:{self.port}",
            'packets_sent': self.packets_sent,
            'bytes_sent': self.bytes_sent,
        }
