"""Command-line interface for nlx-replay."""

from .main import app, main

__all__ = ['app', 'main']
