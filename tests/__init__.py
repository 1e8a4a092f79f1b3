"""Test suite for studyprep."""
