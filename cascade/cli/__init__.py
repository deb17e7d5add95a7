"""Command-line interface for the feed engine."""
