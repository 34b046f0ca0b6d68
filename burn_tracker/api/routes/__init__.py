"""API routes package."""

from . import burn

__all__ = ["burn"]
