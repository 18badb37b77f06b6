"""Authenticated access to the X API v2 for xplorertui."""

__version__ = "0.1.0"
