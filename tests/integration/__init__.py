"""Integration tests: full dispatches built from on-disk configuration."""
