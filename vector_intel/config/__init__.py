"""
Configuration System

Configuration Priority (highest to lowest):
    1. Programmatic (passed to IntelConfig())
    2. Config file (IntelConfig.from_file)
    3. Environment variables (VECINTEL_* prefix)
    4. Built-in defaults
"""

from vector_intel.config.settings import IntelConfig

__all__ = ["IntelConfig"]
