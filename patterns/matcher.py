"""
Keyword-driven technical pattern matcher.

Scans free text for the terms in a PatternRegistry and reports typed matches
with a confidence score in [0, 1]. Matching is plain case-insensitive
substring containment; every keyword hit yields its own match.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from patterns.library import (
    ACTION_WORDS,
    CATEGORIES,
    COMPONENT_WORDS,
    DEPLOYMENT_TYPE_WORDS,
    ENVIRONMENT_WORDS,
    MULTI_KEYWORD_BOOST,
    STATUS_WORDS,
    PatternDefinition,
    PatternRegistry,
    default_registry,
)

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 50


class PatternMatch:
    """
    A single keyword hit for a pattern definition.
    """
    def __init__(self, definition: PatternDefinition, keyword: str, confidence: float, context: str, position: int, text: str = '', timestamp: Optional[datetime] = None):
        self.definition = definition
        self.keyword = keyword
        self.confidence = confidence
        self.context = context
        self.position = position
        self.text = text
        self.timestamp = timestamp or datetime.now(timezone.utc)


class CategoryPattern:
    """
    Typed signal derived from a PatternMatch.
    """
    category = ''

    def __init__(self, type: str, confidence: float, context: str, action: str = 'unknown', component: str = 'general', environment: str = 'unknown', status: str = 'unknown', timestamp: Optional[datetime] = None):
        self.type = type
        self.action = action
        self.component = component
        self.environment = environment
        self.status = status
        self.confidence = confidence
        self.context = context
        self.timestamp = timestamp or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'type': self.type,
            'action': self.action,
            'component': self.component,
            'environment': self.environment,
            'status': self.status,
            'confidence': self.confidence,
            'context': self.context,
        }

    def __repr__(self):
        return f"{self.__class__.__name__}(type={self.type!r}, confidence={self.confidence})"


class InfrastructurePattern(CategoryPattern):
    category = 'infrastructure'


class DeploymentPattern(CategoryPattern):
    category = 'deployment'


class DevelopmentPattern(CategoryPattern):
    category = 'development'


class DatabasePattern(CategoryPattern):
    category = 'database'


class SecurityPattern(CategoryPattern):
    category = 'security'


class TestingPattern(CategoryPattern):
    category = 'testing'


_RECORD_TYPES = {
    'infrastructure': InfrastructurePattern,
    'deployment': DeploymentPattern,
    'development': DevelopmentPattern,
    'database': DatabasePattern,
    'security': SecurityPattern,
    'testing': TestingPattern,
}


def _first_group_hit(lower: str, table: Tuple[Tuple[Tuple[str, ...], str], ...], default: str) -> str:
    for words, label in table:
        if any(w in lower for w in words):
            return label
    return default


class PatternMatcher:
    """Match text against an injected, read-only pattern registry."""

    def __init__(self, registry: Optional[PatternRegistry] = None, debug: bool = False):
        self.registry = registry or default_registry()
        self.debug = debug

    # --- scoring -----------------------------------------------------------

    def calculate_confidence(self, lower_text: str, definition: PatternDefinition) -> float:
        """base + boosts for modifiers present + 0.1 per extra keyword hit, capped at 1.0."""
        confidence = definition.base_score
        for modifier, boost in definition.modifiers:
            if modifier in lower_text:
                confidence += boost
                if self.debug:
                    logger.debug("modifier %r boosted %s by %s", modifier, definition.name, boost)
        keyword_hits = sum(1 for k in definition.keywords if k in lower_text)
        if keyword_hits > 1:
            confidence += (keyword_hits - 1) * MULTI_KEYWORD_BOOST
        return min(confidence, 1.0)

    @staticmethod
    def extract_context(text: str, keyword: str) -> str:
        """Return up to 50 characters either side of the keyword, trimmed to whole words."""
        lower = text.lower()
        source = text if len(lower) == len(text) else lower
        pos = lower.find(keyword)
        if pos == -1:
            return text
        start = max(0, pos - CONTEXT_WINDOW)
        end = min(len(source), pos + len(keyword) + CONTEXT_WINDOW)
        context = source[start:end]
        if start > 0 and ' ' in context:
            context = context[context.index(' ') + 1:]
        if end < len(source) and ' ' in context:
            context = context[:context.rindex(' ')]
        return context.strip()

    def find_pattern_matches(self, text: str, definition: PatternDefinition) -> List[PatternMatch]:
        """One PatternMatch per keyword of the definition found in text."""
        lower = text.lower()
        matches: List[PatternMatch] = []
        confidence = None
        for keyword in definition.keywords:
            if keyword not in lower:
                continue
            if confidence is None:
                confidence = self.calculate_confidence(lower, definition)
            matches.append(PatternMatch(
                definition=definition,
                keyword=keyword,
                confidence=confidence,
                context=self.extract_context(text, keyword),
                position=lower.find(keyword),
                text=text,
            ))
        return matches

    # --- secondary lookups ---------------------------------------------------

    @staticmethod
    def extract_action(text: str) -> str:
        lower = text.lower()
        for action in ACTION_WORDS:
            if action in lower:
                return action
        return 'unknown'

    @staticmethod
    def extract_status(text: str) -> str:
        return _first_group_hit(text.lower(), STATUS_WORDS, 'unknown')

    @staticmethod
    def extract_component(text: str, subcategory: str) -> str:
        lower = text.lower()
        for name, components in COMPONENT_WORDS:
            if name != subcategory:
                continue
            for comp in components:
                if comp in lower:
                    return comp
        return 'general'

    @staticmethod
    def extract_deployment_type(text: str) -> str:
        return _first_group_hit(text.lower(), DEPLOYMENT_TYPE_WORDS, 'deploy')

    @staticmethod
    def extract_environment(text: str) -> str:
        lower = text.lower()
        for token, normalized in ENVIRONMENT_WORDS:
            if token in lower:
                return normalized
        return 'unknown'

    # --- per category --------------------------------------------------------

    def _to_record(self, category: str, match: PatternMatch) -> CategoryPattern:
        ctx = match.context
        subcategory = match.definition.subcategory
        record_cls = _RECORD_TYPES[category]
        if category == 'deployment':
            return record_cls(
                type=self.extract_deployment_type(ctx),
                component=subcategory,
                environment=self.extract_environment(ctx),
                status=self.extract_status(ctx),
                action=self.extract_action(ctx),
                confidence=match.confidence,
                context=ctx,
            )
        return record_cls(
            type=subcategory,
            action=self.extract_action(ctx),
            component=self.extract_component(ctx, subcategory),
            environment=self.extract_environment(ctx),
            status=self.extract_status(ctx),
            confidence=match.confidence,
            context=ctx,
        )

    def match_category(self, category: str, text: str) -> List[CategoryPattern]:
        if not text or not text.strip():
            return []
        records: List[CategoryPattern] = []
        for definition in self.registry.definitions(category):
            for match in self.find_pattern_matches(text, definition):
                records.append(self._to_record(category, match))
        return records

    def match_infrastructure_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('infrastructure', text)

    def match_deployment_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('deployment', text)

    def match_development_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('development', text)

    def match_database_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('database', text)

    def match_security_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('security', text)

    def match_testing_patterns(self, text: str) -> List[CategoryPattern]:
        return self.match_category('testing', text)

    def match_all_patterns(self, text: str) -> Dict[str, Any]:
        """
        Run every category and return {category: [records], ...} plus
        overall_confidence (mean over all matches, 0.0 when none) and total_matches.
        """
        results: Dict[str, Any] = {}
        confidences: List[float] = []
        for category in CATEGORIES:
            records = self.match_category(category, text)
            results[category] = records
            confidences.extend(r.confidence for r in records)
        results['total_matches'] = len(confidences)
        results['overall_confidence'] = (sum(confidences) / len(confidences)) if confidences else 0.0
        return results

    def get_pattern_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {f"{c}_patterns": len(self.registry.definitions(c)) for c in CATEGORIES}
        stats['total_patterns'] = len(self.registry)
        stats['version'] = self.registry.version
        return stats


__all__ = [
    "PatternMatch",
    "PatternMatcher",
    "CategoryPattern",
    "InfrastructurePattern",
    "DeploymentPattern",
    "DevelopmentPattern",
    "DatabasePattern",
    "SecurityPattern",
    "TestingPattern",
]
