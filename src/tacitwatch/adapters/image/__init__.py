"""Image preprocessing adapters."""

from .pillow import PillowAdapter

__all__ = ["PillowAdapter"]
