"""Average-speed sector tracking from a live GPS fix stream."""

__version__ = "0.1.0"
