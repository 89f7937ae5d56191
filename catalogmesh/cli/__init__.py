"""Command-line interface for catalogmesh."""
