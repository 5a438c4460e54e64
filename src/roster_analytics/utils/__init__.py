"""Logging and JSON helpers."""
