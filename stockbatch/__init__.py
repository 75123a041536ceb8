"""Multi-key concurrent generation queue for stock media batches."""

__version__ = "0.1.0"
