"""Tacit renewal detection for scanned and digital contracts."""

__version__ = "0.1.0"
