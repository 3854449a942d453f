"""Infrastructure adapters (database, logging)."""
