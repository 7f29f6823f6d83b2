"""Command-line entry points (``python -m epitrace.scripts.<name>``)."""
