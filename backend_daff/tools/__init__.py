"""Command-line tools for Backend DAFF."""
