"""Maintenance scripts (sample data loading)."""
