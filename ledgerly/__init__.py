"""Ledgerly: privileged server-side operations for a personal/business finance tracker."""

__version__ = "1.0.0"
