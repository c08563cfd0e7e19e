"""Allow running with ``python -m quadlabel``."""

from .app import main

main()
