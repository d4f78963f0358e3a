"""Configuration module for the app registration provisioner."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
