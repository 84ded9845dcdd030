"""Bundled data files (relay directory snapshot)."""
