"""Scan, select and orchestrate."""
