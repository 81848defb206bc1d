"""Cockpit Graph: synchronize Cockpit CMS content into a linked node graph."""

__version__ = "0.1.0"
