"""Feed Timeline - Incremental, filtered feed timelines for prediction markets."""

__version__ = "0.1.0"
