"""Adapters implementing application ports against external systems."""
