"""Linker: short name to URL redirect service."""

__version__ = "1.0.0"
