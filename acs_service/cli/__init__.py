"""Command-line interface for acs-service."""
