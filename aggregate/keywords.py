"""
Keyword tables for the data aggregator.

Every cascade is an ordered tuple of (label, keywords); the first label with a
keyword contained in the lowercased text wins. Bump KEYWORD_TABLES_VERSION
when a table changes.
"""

KEYWORD_TABLES_VERSION = '1.0'

PRIORITY_BASE = (
    (('critical', 'highest'), 100),
    (('high',), 80),
    (('medium',), 60),
    (('low',), 40),
    (('lowest',), 20),
)
DEFAULT_PRIORITY = 50

# checked as an if/elif chain on the lowercased status name
STATUS_BOOSTS = (
    (('progress', 'development'), 20),
    (('blocked',), 30),
    (('done', 'closed'), 10),
)

WORK_TYPE_RULES = (
    ('bug_fix', ('fix', 'error')),
    ('deployment', ('deploy', 'release')),
    ('infrastructure', ('terraform', 'infrastructure', 'aws')),
    ('database', ('database', 'migration')),
    ('testing', ('test',)),
    ('security', ('security', 'auth')),
    ('code_review', ('review', 'pr')),
)
BUG_ISSUE_TYPES = ('bug',)
FEATURE_ISSUE_TYPES = ('feature', 'story')

ISSUE_COMPLETION_RULES = (
    ('completed', ('done', 'closed', 'resolved')),
    ('in_progress', ('progress', 'development', 'active')),
    ('blocked', ('blocked',)),
    ('under_review', ('review',)),
)
DEFAULT_ISSUE_COMPLETION = 'planned'

ACTION_VERBS = (
    'implemented', 'created', 'added', 'built', 'developed',
    'fixed', 'resolved', 'corrected', 'debugged', 'troubleshot',
    'updated', 'modified', 'changed', 'improved', 'enhanced',
    'deployed', 'released', 'pushed', 'merged', 'integrated',
    'tested', 'verified', 'validated', 'checked', 'confirmed',
    'configured', 'setup', 'installed', 'initialized', 'prepared',
    'investigated', 'analyzed', 'reviewed', 'examined', 'explored',
    'documented', 'wrote', 'recorded', 'noted', 'explained',
)

TECHNICAL_TERMS = (
    'terraform', 'spacelift', 'aws', 'kubernetes', 'k8s', 'docker',
    'database', 'sql', 'postgresql', 'mysql', 'mongodb',
    'api', 'rest', 'graphql', 'endpoint', 'microservice',
    'ci/cd', 'pipeline', 'jenkins', 'github', 'gitlab',
    'vpc', 'ecr', 's3', 'lambda', 'ec2', 'rds',
    'oauth', 'oidc', 'authentication', 'authorization', 'jwt',
    'ssl', 'tls', 'https', 'security', 'encryption',
    'monitoring', 'logging', 'metrics', 'alerts',
    'redis', 'elasticsearch', 'kafka', 'rabbitmq',
    'nginx', 'apache', 'load balancer', 'proxy',
)

COMMENT_WORK_TYPE_RULES = (
    ('infrastructure', ('terraform', 'aws', 'infrastructure')),
    ('database', ('database', 'sql')),
    ('deployment', ('deploy', 'release')),
    ('testing', ('test',)),
    ('code_review', ('review', 'pr', 'merge')),
    ('bug_fix', ('fix', 'bug', 'error')),
    ('security', ('security', 'auth')),
)
DEFAULT_WORK_TYPE = 'general'

POSITIVE_WORDS = ('completed', 'fixed', 'resolved', 'success', 'working', 'good', 'great', 'done')
NEGATIVE_WORDS = ('blocked', 'failed', 'error', 'issue', 'problem', 'broken', 'stuck')

IMPORTANCE_BASE = 50
IMPORTANCE_CAP = 100
IMPORTANCE_WEIGHTS = (
    (('critical', 'urgent', 'blocked', 'production', 'outage', 'security'), 30),
    (('completed', 'deployed', 'merged', 'resolved', 'implemented'), 20),
    (('terraform', 'kubernetes', 'database', 'api', 'infrastructure'), 10),
)

ACTIVITY_TYPE_RULES = (
    ('completion', ('completed', 'finished', 'done')),
    ('initiation', ('started', 'beginning', 'working on')),
    ('update', ('updated', 'modified', 'changed')),
    ('investigation', ('investigating', 'looking into', 'debugging')),
    ('blocker', ('blocked', 'waiting', 'stuck')),
)
DEFAULT_ACTIVITY_TYPE = 'progress'

COMMENT_COMPLETION_RULES = (
    ('completed', ('completed', 'finished', 'done', 'resolved')),
    ('in_progress', ('working on', 'in progress', 'currently')),
    ('blocked', ('blocked', 'waiting', 'stuck')),
    ('planned', ('planning', 'will', 'next')),
)
DEFAULT_COMMENT_COMPLETION = 'unknown'

# (keywords, display topic), ordered
TOPIC_RULES = (
    (('terraform',), 'Terraform'),
    (('spacelift',), 'Spacelift'),
    (('aws',), 'AWS'),
    (('database',), 'Database'),
    (('kubernetes', 'k8s'), 'Kubernetes'),
    (('docker',), 'Docker'),
    (('api',), 'API'),
    (('security',), 'Security'),
    (('authentication',), 'Authentication'),
    (('deployment',), 'Deployment'),
    (('testing',), 'Testing'),
    (('monitoring',), 'Monitoring'),
    (('ci/cd',), 'CI/CD'),
    (('pipeline',), 'Pipeline'),
)

ENVIRONMENT_TERMS = (
    ('production', 'production'),
    ('prod', 'production'),
    ('staging', 'staging'),
    ('stage', 'staging'),
    ('development', 'development'),
    ('dev', 'development'),
)


def first_rule_match(lower_text: str, rules, default: str) -> str:
    """Return the label of the first (label, keywords) rule hitting lower_text."""
    for label, words in rules:
        if any(w in lower_text for w in words):
            return label
    return default
