"""Validator result callback resources."""
