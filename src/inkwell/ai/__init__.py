"""Completion client, token budgeting, streaming orchestration, and tools."""
