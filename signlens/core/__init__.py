"""Core types, errors, event bus and the recognition pipeline."""
