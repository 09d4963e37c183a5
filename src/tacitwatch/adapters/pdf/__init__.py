"""PDF adapters."""

from .poppler import PopplerAdapter

__all__ = ["PopplerAdapter"]
