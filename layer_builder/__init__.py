"""Incremental, cache-aware container image builds from git repositories."""

__version__ = "0.1.0"
