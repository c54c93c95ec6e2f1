"""Command-line client for vecsync."""
