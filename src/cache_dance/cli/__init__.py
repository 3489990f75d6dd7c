"""Command line interface for cache-dance."""
