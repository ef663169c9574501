"""Core roundup configuration and error taxonomy."""

from roundup.core.config import get_settings, settings
from roundup.core.errors import RoundupError

__all__ = ["get_settings", "settings", "RoundupError"]
