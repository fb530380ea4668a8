"""Network collectors for raw data packets."""

from .udp_collector import UDPCollector

__all__ = ['UDPCollector']
