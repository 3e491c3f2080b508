"""Command line interface for Vidshelf."""
