"""Command line entrypoint (``crm-import``)."""

from .__main__ import main

__all__ = ["main"]
