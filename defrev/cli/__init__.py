"""defrev command-line interface."""
