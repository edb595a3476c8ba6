"""Adapters for operating-system collaborators."""
