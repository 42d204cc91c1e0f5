"""HTTP surface over the query service."""
