"""
Report package: render standup narratives and processed data for output.
"""

from .renderer import render, FORMATS

__all__ = ["render", "FORMATS"]
