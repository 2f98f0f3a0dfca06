"""
Core components for KBSProv.

This package contains configuration loading, the exception taxonomy, the
external process runner and the install overlay protocol.
"""

__all__ = []
