"""Kaya ingestion and Mountain Project reconciliation pipeline."""

__version__ = "0.1.0"
