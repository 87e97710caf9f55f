"""Configuration, logging, quota and performance utilities."""
