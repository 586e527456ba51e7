"""Harvest museum and library metadata over OAI-PMH and normalize it for indexing."""

__version__ = "0.1.0"
