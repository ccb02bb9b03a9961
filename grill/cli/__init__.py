"""Command-line interface for grill."""
