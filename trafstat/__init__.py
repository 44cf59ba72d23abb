"""Traffic statistics from capture files: decoding, accounting, graphs and storage."""

__version__ = "0.1.0"