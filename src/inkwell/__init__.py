"""Inkwell: manuscript-analysis tools driven by streaming LLM completions."""

__version__ = "0.1.0"

__all__ = ["__version__"]
