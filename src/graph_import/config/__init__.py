"""
Configuration module for the graph import engine.
"""

from .config_loader import DEFAULT_CONFIG, ImportConfig

__all__ = ["DEFAULT_CONFIG", "ImportConfig"]
