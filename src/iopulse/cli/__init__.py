"""Command line interface for iopulse."""
