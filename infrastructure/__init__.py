"""Persistence and other adapters for the signage scheduler."""
