"""
Configuration for veo3ops.
"""

from veo3ops.config.settings import DEFAULT_MODEL, Settings

__all__ = ["DEFAULT_MODEL", "Settings"]
