"""Command line interface for cnabproc."""
