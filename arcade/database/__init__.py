"""Persistence schema for the arcade backend."""
