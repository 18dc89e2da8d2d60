"""
Core utilities shared across cardvault.

This package hosts configuration helpers (env vars, storage paths, capacity,
compression profiles). Services depend on these primitives instead of
reading the environment or importing FastAPI directly.
"""
