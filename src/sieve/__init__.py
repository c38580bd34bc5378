"""Sieve - a reverse proxy that drops metric series by name prefix."""

from .app import create_app
from .config import FilterConfig, ServerConfig

__all__ = ["create_app", "FilterConfig", "ServerConfig"]
