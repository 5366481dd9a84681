"""Typer CLI for the Reelvault Catalog API."""
