"""Request input validation helpers."""
