"""Resilient remote payload loader."""

__version__ = "0.1.0"
