"""
Package: config
Description: Application configuration loaded from the environment.
"""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
