"""studyprep -- PDF extraction, chunking, and topic indexing for exam preparation."""

__version__ = "0.1.0"
