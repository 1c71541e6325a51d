"""Command-line entry point for termchat."""
