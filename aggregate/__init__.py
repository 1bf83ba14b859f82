"""
Aggregate package: turn issues and comments into a structured work model.
"""

from .models import ProcessedData, EnhancedIssue, ProcessedComment, TechnicalContext, TimelineEvent
from .processor import DataAggregator

__all__ = ["ProcessedData", "EnhancedIssue", "ProcessedComment", "TechnicalContext", "TimelineEvent", "DataAggregator"]
