"""Command-line tools for the CNC buffer."""
