"""
Patterns package: DevOps terminology tables and the keyword matcher built on them.
"""

from .library import PATTERN_LIBRARY_VERSION, PatternDefinition, PatternRegistry, default_registry
from .matcher import PatternMatcher, PatternMatch

__all__ = ["PATTERN_LIBRARY_VERSION", "PatternDefinition", "PatternRegistry", "default_registry", "PatternMatcher", "PatternMatch"]
