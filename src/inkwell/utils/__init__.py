"""Shared logging and file helpers."""
