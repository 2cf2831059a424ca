"""Hierarchical outline editing core: tree engine, format adapters, repair and storage."""

__version__ = "0.1.0"
