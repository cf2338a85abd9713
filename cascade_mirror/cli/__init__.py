"""Command-line interface for cascade-mirror."""
