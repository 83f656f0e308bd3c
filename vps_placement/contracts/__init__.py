"""Contracts shared between the placement engine and its callers."""
