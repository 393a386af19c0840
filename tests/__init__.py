"""
Test suite for the tiered memory pipeline.

- unit/: Individual components (classifier, harvester, decoder, store, ...)
- integration/: End-to-end pipeline scenarios through the memory service
- api/: HTTP endpoints through FastAPI's TestClient

Every test runs against its own in-memory SQLite database; the extraction
model is replaced by a scripted fake.
"""
