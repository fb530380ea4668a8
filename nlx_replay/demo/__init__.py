"""Synthetic CSC data for demos and tests."""

from .csc_generator import CscGenerator, SignalProfile, build_header, write_csc_file

__all__ = [
    'CscGenerator',
    'SignalProfile',
    'build_header',
    'write_csc_file',
]
