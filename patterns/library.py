"""
DevOps terminology tables for the pattern matcher.

Tables are plain ordered tuples so iteration order (and therefore match order)
never depends on dict hashing. Bump PATTERN_LIBRARY_VERSION whenever a keyword,
modifier or score changes.
"""
from functools import lru_cache
from typing import Dict, Iterable, List, Tuple

PATTERN_LIBRARY_VERSION = '1.0'

CATEGORIES = ('infrastructure', 'deployment', 'development', 'database', 'security', 'testing')

# gap added per extra keyword hit beyond the first
MULTI_KEYWORD_BOOST = 0.1


class PatternDefinition:
    """
    One named pattern: keywords that trigger it, a base score and context
    modifiers that raise confidence when present. Fields are tuples and are
    not reassigned after construction.
    """
    def __init__(self, name: str, category: str, subcategory: str, keywords: Iterable[str], base_score: float, modifiers: Iterable[Tuple[str, float]], examples: Iterable[str] = ()):
        self.name = name
        self.category = category
        self.subcategory = subcategory
        self.keywords = tuple(k.lower() for k in keywords)
        self.base_score = float(base_score)
        self.modifiers = tuple((m.lower(), float(b)) for m, b in modifiers)  # ordered (keyword, boost)
        self.examples = tuple(examples)

    def __repr__(self):
        return f"PatternDefinition({self.category}/{self.subcategory})"


# (category, subcategory, name, keywords, base score, modifiers, examples)
_PATTERN_TABLE = (
    ('infrastructure', 'terraform', 'Terraform Infrastructure',
     ('terraform', 'tf', 'spacelift', 'infrastructure as code', 'iac'), 0.9,
     (('apply', 0.2), ('plan', 0.15), ('destroy', 0.25), ('init', 0.1), ('validate', 0.1), ('import', 0.15), ('state', 0.1), ('workspace', 0.1)),
     ('Applied Terraform configuration', 'Terraform plan shows changes', 'Updated Terraform modules')),
    ('infrastructure', 'aws', 'AWS Cloud Services',
     ('aws', 'amazon web services', 'ec2', 's3', 'rds', 'lambda', 'vpc', 'ecr', 'ecs', 'eks'), 0.85,
     (('deploy', 0.2), ('configure', 0.15), ('setup', 0.15), ('provision', 0.2), ('scale', 0.15), ('monitor', 0.1)),
     ('Configured AWS VPC endpoints', 'Deployed Lambda function', 'Set up S3 bucket policies')),
    ('infrastructure', 'kubernetes', 'Kubernetes Container Orchestration',
     ('kubernetes', 'k8s', 'kubectl', 'helm', 'pod', 'deployment', 'service', 'ingress', 'namespace'), 0.9,
     (('deploy', 0.2), ('scale', 0.15), ('rollout', 0.2), ('configure', 0.15), ('troubleshoot', 0.1)),
     ('Deployed service to Kubernetes', 'Scaled pods in production namespace')),
    ('deployment', 'application', 'Application Deployment',
     ('deploy', 'deployment', 'release', 'rollout', 'publish', 'ship'), 0.85,
     (('production', 0.3), ('staging', 0.2), ('development', 0.1), ('rollback', 0.25), ('hotfix', 0.3), ('canary', 0.2), ('blue-green', 0.2)),
     ('Deployed to production', 'Rolled back staging release')),
    ('deployment', 'pipeline', 'CI/CD Pipeline',
     ('ci/cd', 'pipeline', 'jenkins', 'github actions', 'gitlab ci', 'build', 'continuous integration'), 0.8,
     (('failed', 0.2), ('passed', 0.15), ('triggered', 0.1), ('fixed', 0.2), ('optimized', 0.15)),
     ('Fixed failing pipeline', 'Triggered Jenkins build')),
    ('development', 'code_review', 'Code Review Process',
     ('pr', 'pull request', 'merge request', 'code review', 'review', 'approve', 'lgtm'), 0.8,
     (('created', 0.15), ('merged', 0.2), ('approved', 0.15), ('reviewed', 0.1), ('feedback', 0.1), ('addressed', 0.15)),
     ('Merged PR for auth service', 'Addressed code review feedback')),
    ('development', 'bug_fix', 'Bug Fix and Troubleshooting',
     ('bug', 'fix', 'error', 'issue', 'problem', 'troubleshoot', 'debug', 'resolve'), 0.85,
     (('critical', 0.3), ('urgent', 0.25), ('production', 0.3), ('hotfix', 0.3), ('resolved', 0.2), ('identified', 0.15)),
     ('Fixed login bug', 'Resolved production error')),
    ('database', 'operations', 'Database Operations',
     ('database', 'db', 'sql', 'postgresql', 'mysql', 'mongodb', 'migration', 'schema'), 0.8,
     (('migration', 0.2), ('backup', 0.15), ('restore', 0.2), ('optimize', 0.15), ('permissions', 0.15), ('index', 0.1)),
     ('Ran database migration', 'Updated schema permissions')),
    ('database', 'liquibase', 'Liquibase Database Management',
     ('liquibase', 'changelog', 'changeset', 'rollback', 'database versioning'), 0.85,
     (('update', 0.2), ('rollback', 0.25), ('validate', 0.15), ('generate', 0.15)),
     ('Applied Liquibase changeset', 'Generated changelog')),
    ('security', 'authentication', 'Authentication and Authorization',
     ('auth', 'authentication', 'authorization', 'oauth', 'oidc', 'jwt', 'sso', 'saml'), 0.85,
     (('configure', 0.2), ('integrate', 0.2), ('fix', 0.25), ('setup', 0.15), ('validate', 0.15)),
     ('Configured OIDC provider', 'Integrated SSO login')),
    ('security', 'secrets', 'Secrets Management',
     ('secrets', 'credentials', 'api key', 'token', 'certificate', 'ssl', 'tls'), 0.9,
     (('rotate', 0.2), ('configure', 0.15), ('secure', 0.2), ('encrypt', 0.2), ('vault', 0.15)),
     ('Rotated API keys', 'Renewed TLS certificate')),
    ('testing', 'general', 'Testing and Quality Assurance',
     ('test', 'testing', 'unit test', 'integration test', 'e2e', 'qa', 'validation'), 0.75,
     (('passed', 0.15), ('failed', 0.2), ('created', 0.15), ('updated', 0.1), ('automated', 0.15)),
     ('Tests passed successfully', 'Created unit tests', 'Fixed failing tests')),
)

# secondary lookups, checked in order; first hit wins
ACTION_WORDS = (
    'deploy', 'configure', 'setup', 'install', 'update', 'upgrade',
    'create', 'build', 'implement', 'develop', 'fix', 'resolve',
    'test', 'validate', 'verify', 'review', 'approve', 'merge',
    'troubleshoot', 'debug', 'investigate', 'analyze', 'optimize',
)

STATUS_WORDS = (
    (('completed', 'done', 'finished'), 'completed'),
    (('in progress', 'working', 'ongoing'), 'in_progress'),
    (('blocked', 'stuck', 'waiting'), 'blocked'),
    (('failed', 'error', 'issue'), 'failed'),
    (('planned', 'scheduled', 'upcoming'), 'planned'),
)

COMPONENT_WORDS = (
    ('terraform', ('module', 'resource', 'provider', 'state', 'workspace')),
    ('aws', ('vpc', 'ec2', 's3', 'rds', 'lambda', 'ecr', 'ecs', 'eks', 'iam')),
    ('kubernetes', ('pod', 'deployment', 'service', 'ingress', 'configmap', 'secret', 'namespace')),
)

DEPLOYMENT_TYPE_WORDS = (
    (('rollback',), 'rollback'),
    (('hotfix',), 'hotfix'),
    (('canary',), 'canary'),
    (('blue-green', 'blue green'), 'blue_green'),
)

# raw token -> normalized environment name
ENVIRONMENT_WORDS = (
    ('production', 'production'),
    ('prod', 'production'),
    ('staging', 'staging'),
    ('stage', 'staging'),
    ('development', 'development'),
    ('dev', 'development'),
    ('test', 'test'),
    ('testing', 'test'),
)


class PatternRegistry:
    """
    Read-only, ordered collection of pattern definitions grouped by category.
    Build one with default_registry() or pass custom definitions for tests.
    """
    def __init__(self, definitions: Iterable[PatternDefinition], version: str = PATTERN_LIBRARY_VERSION):
        grouped: Dict[str, List[PatternDefinition]] = {c: [] for c in CATEGORIES}
        for d in definitions:
            grouped.setdefault(d.category, []).append(d)
        self._by_category = {c: tuple(defs) for c, defs in grouped.items()}
        self.version = version

    def definitions(self, category: str) -> Tuple[PatternDefinition, ...]:
        return self._by_category.get(category, ())

    def categories(self) -> Tuple[str, ...]:
        return tuple(self._by_category.keys())

    def __len__(self):
        return sum(len(v) for v in self._by_category.values())


def build_definitions() -> List[PatternDefinition]:
    return [
        PatternDefinition(name, category, subcategory, keywords, base, modifiers, examples)
        for category, subcategory, name, keywords, base, modifiers, examples in _PATTERN_TABLE
    ]


@lru_cache(maxsize=1)
def default_registry() -> PatternRegistry:
    """Build the shared registry once, on first use."""
    return PatternRegistry(build_definitions())


__all__ = [
    "PATTERN_LIBRARY_VERSION",
    "CATEGORIES",
    "PatternDefinition",
    "PatternRegistry",
    "build_definitions",
    "default_registry",
]
