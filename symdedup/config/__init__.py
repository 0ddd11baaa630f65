"""Logging, settings and exceptions for symdedup."""
