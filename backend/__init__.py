"""Reelvault backend packages."""
