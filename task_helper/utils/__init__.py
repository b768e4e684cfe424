"""Utility helpers (filesystem access, schema validation)."""
