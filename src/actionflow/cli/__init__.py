"""actionflow command-line interface (Typer + Rich)."""
