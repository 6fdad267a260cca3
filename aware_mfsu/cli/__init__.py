"""Command-line interfaces for aware-mfsu."""
