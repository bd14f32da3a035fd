"""IoPulse - multi-agent crypto investment advisory backend."""

__version__ = "0.1.0"
