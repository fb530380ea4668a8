"""Allow ``python -m nlx_replay``."""

from .cli.main import main

main()
