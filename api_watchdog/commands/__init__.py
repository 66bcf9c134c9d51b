"""Administrator commands."""

from .router import CommandRouter

__all__ = ["CommandRouter"]
