"""Backup operator for cert-manager certificates."""

__version__ = "0.1.0"
