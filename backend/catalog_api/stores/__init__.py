"""Database-backed stores for the Catalog API."""
