"""Huzzology - archetype classification and clustering pipeline."""

__version__ = "0.1.0"
