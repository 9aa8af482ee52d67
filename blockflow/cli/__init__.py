"""Command-line interface for running pipeline definition files."""
