"""Vision package exports."""

from .pipeline import PoseSource

__all__ = ["PoseSource"]
