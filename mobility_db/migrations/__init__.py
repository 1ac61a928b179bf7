"""Alembic environment, helpers and revision scripts for the research schema."""
