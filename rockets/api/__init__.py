"""HTTP surface for the rockets service."""
