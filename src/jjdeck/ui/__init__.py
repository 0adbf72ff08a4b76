"""Textual front-end."""
