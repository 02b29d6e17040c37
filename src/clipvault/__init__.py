"""Encrypted, searchable clipboard history."""

__version__ = "0.1.0"
