"""Paced replay of CSC files over UDP."""

from .scheduler import PacingStats, run_paced, run_paced_while
from .sender import UDPSender
from .runner import ReplayRunner, ReplayResult

__all__ = [
    'PacingStats',
    'run_paced',
    'run_paced_while',
    'UDPSender',
    'ReplayRunner',
    'ReplayResult',
]
