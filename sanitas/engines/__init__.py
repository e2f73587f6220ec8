"""Sanitization engines."""
