"""Daily task dispatch for polling automation agents and remote machine recovery."""

__version__ = "0.1.0"
