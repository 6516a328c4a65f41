# src/__init__.py — v1
"""Manuscript pipeline: editorial analysis and asset generation for authors."""

from manuscript_pipeline.version import __version__

__all__ = ["__version__"]
