"""
Database models for Linker.
"""

from .link import Link

__all__ = ["Link"]
