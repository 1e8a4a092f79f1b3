"""End-to-end pipeline tests over generated PDFs."""
