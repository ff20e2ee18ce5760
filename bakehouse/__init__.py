"""Bakehouse inventory: FEFO stock allocation, batch QC and production runs."""

__version__ = "0.1.0"
