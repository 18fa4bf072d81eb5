"""Code shared across Clearline services."""
