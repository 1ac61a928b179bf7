"""Core configuration, logging and database utilities."""
