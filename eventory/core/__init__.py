"""Core infrastructure helpers."""
