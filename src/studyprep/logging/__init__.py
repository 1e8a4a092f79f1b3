"""Logging package -- dual-handler setup for console and JSON file output."""

from .setup import setup_logging

__all__ = ["setup_logging"]
