"""Shared helpers: logging, retry, request coalescing, name patterns."""
