"""Catalog bridge test suite."""
