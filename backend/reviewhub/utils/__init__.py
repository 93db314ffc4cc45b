"""
Configuration helpers.
"""

from .config import ReviewHubSettings, load_settings, configure_logging

__all__ = ["ReviewHubSettings", "load_settings", "configure_logging"]
