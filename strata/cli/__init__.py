"""Command-line interface for strata."""
