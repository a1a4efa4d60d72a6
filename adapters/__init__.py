"""External adapters (data sources)."""
