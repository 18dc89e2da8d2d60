"""Domain models and rules (records, collection codec, errors)."""
