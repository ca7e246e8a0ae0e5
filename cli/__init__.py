"""Command line interface for smoothnets."""
