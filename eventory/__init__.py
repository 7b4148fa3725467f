"""Eventory payments backend."""
