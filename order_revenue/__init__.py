"""Order revenue dashboard core: ingest marketplace order exports, compute revenue, aggregate analytics."""

__version__ = "0.1.0"
