"""Hive placement and crop flowering records with nearby-crop lookups."""

__version__ = "0.1.0"
