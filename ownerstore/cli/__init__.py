"""Command-line interface for ownerstore."""
