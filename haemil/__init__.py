"""Tenant-scoped event storage and guarded local tools for agent runtimes."""

__version__ = "0.1.0"