"""HTTP API for cached burn data."""
