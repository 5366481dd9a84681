"""Reelvault Catalog API: TMDB-backed movie and TV catalog service."""
from .app import create_app

__all__ = ["create_app"]
