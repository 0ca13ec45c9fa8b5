"""Command line interface (``python -m order_revenue.cli``)."""

from .app import main

__all__ = ["main"]
