"""Unit tests for individual extraction components."""
