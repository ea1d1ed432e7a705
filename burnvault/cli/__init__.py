"""Command-line entry points for burnvault (typer apps)."""
