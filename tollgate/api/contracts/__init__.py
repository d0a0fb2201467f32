"""Contract administration resources."""
