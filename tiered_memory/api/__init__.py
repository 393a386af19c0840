"""HTTP API for the memory pipeline."""
