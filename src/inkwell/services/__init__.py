"""Service layer helpers consumed by the pipeline."""

from .settings import Configuration, default_settings, load_configuration

__all__ = ["Configuration", "default_settings", "load_configuration"]
