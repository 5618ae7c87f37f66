"""Bonus currency services."""
