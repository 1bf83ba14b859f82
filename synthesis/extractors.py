"""
Phrase extraction for the rule-based synthesizer.

extract_phrase() runs an ordered cascade over one comment or issue text and
returns the first non-empty phrase:

1. technical activity (PR merges, infrastructure configuration)
2. development activity (testing, bug fixes, implementation, refactoring)
3. infrastructure / deployment area (Terraform, database, AWS, ...)
4. progress indicators ("finished the ...", "working on ...")
5. first sentence with an action verb
6. detected topics
7. the raw text, truncated

Every rule carries a technical phrase and a plain one; the plain variant is
used for the business and brief styles and never names a technology.

The second half of the module buckets phrases into completed / in progress /
general and composes the standup narrative from them.
"""
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from aggregate.keywords import ENVIRONMENT_TERMS, TECHNICAL_TERMS, TOPIC_RULES
from synthesis.text import capitalize_first, contains_word, split_sentences, truncate_text

ITEM_MAX_LENGTH = 60
OBJECT_MAX_WORDS = 4
INDICATOR_MAX_WORDS = 6
TOPIC_LIMIT = 3

_PUNCT_RE = re.compile(r"[.,;:!?()\[\]\n]")
_STOP_WORDS = ('into', 'to', 'in', 'on', 'and', 'with', 'after', 'before', 'because', 'so', 'but')
_FILLER_WORDS = _STOP_WORDS + ('the', 'a', 'an', 'for', 'of', 'from', 'via', 'using')
_TECH_TERM_RE = re.compile(
    r"\b(?:" + '|'.join(re.escape(t) for t in sorted(TECHNICAL_TERMS, key=len, reverse=True)) + r")\b", re.IGNORECASE
)

# --- stage 1 ---------------------------------------------------------------------

_PR = r"(?:pr|prs|pull request|merge request|mr)"
_PR_MERGED_RE = re.compile(r"\bmerged?\b.*\b" + _PR + r"\b|\b" + _PR + r"\b.*\bmerged\b")
_PR_OPENED_RE = re.compile(r"\b(?:opened|created|raised|submitted)\b.*\b" + _PR + r"\b")
_PR_REVIEW_RE = re.compile(r"\breview(?:ed|ing)?\b.*\b" + _PR + r"\b|\b" + _PR + r"\b.*\breview(?:ed|ing)?\b")

_CONFIG_VERB_RE = re.compile(r"\b(configur\w*|set ?up|provision\w*|creat\w*)")
_CONFIG_VERBS = (('configur', 'Configured'), ('set', 'Set up'), ('provision', 'Provisioned'), ('creat', 'Created'))

# (keywords, technical noun, plain noun), ordered
_CONFIG_TARGETS = (
    (('vpc endpoint', 'vpc endpoints'), 'VPC endpoints', 'network endpoints'),
    (('vpc', 'subnet', 'subnets'), 'VPC networking', 'networking'),
    (('security group', 'security groups'), 'security groups', 'network access rules'),
    (('iam', 'role', 'roles', 'policy', 'policies'), 'IAM roles', 'access roles'),
    (('spacelift',), 'Spacelift stack', 'infrastructure automation'),
    (('s3', 'bucket', 'buckets'), 'S3 buckets', 'storage'),
    (('load balancer', 'alb', 'elb'), 'load balancer', 'load balancer'),
)

# --- stage 2 ---------------------------------------------------------------------

_TEST_RE = re.compile(r"\b(?:tests?|testing|tested|e2e|qa)\b")
_FIX_RE = re.compile(r"\b(fixed|fixing|fixes|fix|hotfix|bug)\b")
_IMPLEMENT_RE = re.compile(r"\b(implemented|implementing|implements|implement)\b")
_REFACTOR_RE = re.compile(r"\b(refactored|refactoring|refactors|refactor)\b")

# --- stage 3 ---------------------------------------------------------------------

# (area keywords, ((sub keywords, technical, plain), ...), (default technical, default plain))
INFRA_RULES = (
    (('terraform', 'spacelift'), (
        (('apply', 'applied'), 'Applied Terraform changes', 'Applied infrastructure changes'),
        (('plan',), 'Reviewed Terraform plan', 'Reviewed infrastructure plan'),
        (('module', 'modules'), 'Updated Terraform modules', 'Updated infrastructure modules'),
    ), ('Terraform infrastructure work', 'Infrastructure work')),
    (('database', 'sql', 'postgresql', 'postgres', 'mysql', 'rds'), (
        (('migration', 'migrations', 'migrate'), 'Database migration', 'Data migration'),
        (('permission', 'permissions', 'grant', 'grants'), 'Database permission changes', 'Data access changes'),
        (('schema',), 'Database schema updates', 'Data model updates'),
        (('backup', 'backups', 'restore'), 'Database backup work', 'Data backup work'),
    ), ('Database work', 'Data work')),
    (('lambda',), (), ('AWS Lambda work', 'Serverless function work')),
    (('aws', 'ec2', 'ecs', 'eks', 's3', 'ecr'), (), ('AWS infrastructure work', 'Cloud infrastructure work')),
    (('vpc', 'subnet', 'subnets'), (), ('VPC networking work', 'Network configuration work')),
    (('kubernetes', 'k8s', 'helm'), (
        (('rollout', 'rolled'), 'Kubernetes rollout', 'Service rollout'),
    ), ('Kubernetes work', 'Container platform work')),
    (('docker', 'container', 'image'), (), ('Docker image work', 'Container work')),
    (('ci/cd', 'pipeline', 'jenkins', 'github actions'), (
        (('failed', 'failing', 'broken'), 'Fixing CI/CD pipeline', 'Fixing build pipeline'),
    ), ('CI/CD pipeline work', 'Build pipeline work')),
    (('oauth', 'oidc', 'sso', 'authentication', 'auth'), (), ('Authentication work', 'Sign-in work')),
    (('deploy', 'deployed', 'deploying', 'deployment', 'release', 'released'), (
        (('rollback', 'rolled back'), 'Rolled back deployment', 'Rolled back release'),
    ), ('Deployment work', 'Release work')),
)

# --- stage 4/5 -------------------------------------------------------------------

_INDICATOR_RE = re.compile(
    r"\b(completed|finished|implemented|deployed|released|fixed|resolved|tested|updated|reviewed|"
    r"investigating|working on|started|blocked on|blocked by|waiting on|waiting for)\b"
)
_ACTION_SENTENCE_RE = re.compile(
    r"\b(?:implement|fix|updat|deploy|add|creat|configur|test|review|merg|investigat|work|"
    r"complet|finish|start|build|built|writ|wrote|document|set ?up|migrat|refactor)\w*"
)

# --- buckets ---------------------------------------------------------------------

COMPLETED_WORDS = (
    'completed', 'finished', 'done', 'resolved', 'merged', 'deployed', 'released',
    'applied', 'fixed', 'implemented', 'shipped', 'closed', 'configured',
)
IN_PROGRESS_WORDS = (
    'working on', 'in progress', 'currently', 'investigating', 'started', 'starting',
    'debugging', 'looking into', 'ongoing', 'blocked', 'waiting', 'fixing', 'implementing',
)
ISSUE_BUCKETS = {
    'completed': 'completed',
    'in_progress': 'in_progress',
    'under_review': 'in_progress',
    'blocked': 'in_progress',
}
BUCKETS = ('completed', 'in_progress', 'general')
BUCKET_LABELS = {'completed': 'Completed', 'in_progress': 'In progress', 'general': 'Also'}

# the first token found keys deduplication within a bucket
CANONICAL_TOKENS = (
    'terraform', 'kubernetes', 'docker', 'database', 'lambda', 'vpc', 'aws',
    'ci/cd', 'pipeline', 'oauth', 'auth', 'api', 'test', 'pr',
)


def _has_any(lower: str, words: Iterable[str]) -> bool:
    return any(contains_word(lower, w) for w in words)


def _mentions_technology(text: str) -> bool:
    return _has_any(text.lower(), TECHNICAL_TERMS)


def plain_wording(text: str) -> str:
    """text with technology names removed; '' when only filler words remain."""
    if not _TECH_TERM_RE.search(text or ''):
        return text
    stripped = _TECH_TERM_RE.sub(' ', text or '')
    stripped = re.sub(r"\s+([,;:.!?])", r"\1", ' '.join(stripped.split()))
    words = stripped.strip(' ,;:-').split()
    while words and words[-1].lower().strip(',;:') in _FILLER_WORDS:
        words.pop()
    while words and words[0].lower() in _FILLER_WORDS:
        words.pop(0)
    if not words:
        return ''
    return capitalize_first(' '.join(words).rstrip(' ,;:-'))


def _words_from(text: str, start: int, max_words: int) -> str:
    """Words of text after start, stopping at punctuation or a connective."""
    tail = _PUNCT_RE.split(text[start:], 1)[0]
    words: List[str] = []
    for word in tail.split():
        if word.lower() in _STOP_WORDS or len(words) >= max_words:
            break
        words.append(word)
    while words and words[-1].lower() in ('the', 'a', 'an'):
        words.pop()
    return ' '.join(words)


def _object_after(text: str, pattern: str, max_words: int = OBJECT_MAX_WORDS) -> str:
    m = re.search(pattern, text, re.IGNORECASE)
    if not m:
        return ''
    obj = _words_from(text, m.end(), max_words)
    if obj.lower().startswith('the '):
        obj = obj[4:]
    return obj


def _keep_object(obj: str, technical: bool) -> str:
    if not technical and _mentions_technology(obj):
        return ''
    return obj


def _for_target(text: str, technical: bool) -> str:
    obj = _keep_object(_object_after(text, r"\bfor\s+"), technical)
    return f" for {obj}" if obj else ''


def environment_suffix(lower: str) -> str:
    for word, env in ENVIRONMENT_TERMS:
        if contains_word(lower, word):
            return f" ({env})"
    return ''


# --- stages ----------------------------------------------------------------------

def technical_activity(text: str, technical: bool = True) -> str:
    lower = text.lower()
    if _PR_MERGED_RE.search(lower):
        return ('Merged PR' if technical else 'Merged code changes') + _for_target(text, technical)
    if _PR_OPENED_RE.search(lower):
        return ('Opened PR' if technical else 'Opened code changes') + _for_target(text, technical)
    if _PR_REVIEW_RE.search(lower):
        return ('Reviewed PR' if technical else 'Reviewed code changes') + _for_target(text, technical)

    verb_match = _CONFIG_VERB_RE.search(lower)
    if not verb_match:
        return ''
    verb = next(label for stem, label in _CONFIG_VERBS if verb_match.group(1).startswith(stem))
    for words, tech_noun, plain_noun in _CONFIG_TARGETS:
        if _has_any(lower, words):
            return f"{verb} {tech_noun if technical else plain_noun}"
    return ''


def _testing_phrase(text: str, lower: str, technical: bool) -> str:
    if 'fail' in lower:
        return 'Fixed failing tests' if _has_any(lower, ('fixed', 'resolved')) else 'Investigating failing tests'
    if _has_any(lower, ('pass', 'passing', 'passed', 'green')):
        return 'Tests passing' + _for_target(text, technical)
    if _has_any(lower, ('add', 'added', 'wrote', 'written', 'created')):
        return 'Added tests' + _for_target(text, technical)
    return 'Testing' + _for_target(text, technical)


def development_activity(text: str, technical: bool = True) -> str:
    lower = text.lower()
    if _TEST_RE.search(lower):
        return _testing_phrase(text, lower, technical)

    m = _FIX_RE.search(lower)
    if m:
        obj = _keep_object(_words_from(text, m.end(), OBJECT_MAX_WORDS + 1), technical) if m.group(1) != 'bug' else ''
        if _has_any(lower, ('fixed', 'resolved')):
            return f"Fixed {obj or 'bug'}"
        if _has_any(lower, ('fixing',)):
            return f"Fixing {obj or 'bug'}"
        return f"Bug fix for {obj}" if obj else 'Bug fix' + _for_target(text, technical)

    for regex, past, ongoing in ((_IMPLEMENT_RE, 'Implemented', 'Implementing'), (_REFACTOR_RE, 'Refactored', 'Refactoring')):
        m = regex.search(lower)
        if m:
            verb = past if m.group(1).endswith('ed') else ongoing
            obj = _keep_object(_words_from(text, m.end(), OBJECT_MAX_WORDS + 1), technical)
            return f"{verb} {obj}".rstrip()
    return ''


def infrastructure_activity(text: str, technical: bool = True) -> str:
    lower = text.lower()
    for area, subrules, (tech_default, plain_default) in INFRA_RULES:
        if not _has_any(lower, area):
            continue
        tech, plain = tech_default, plain_default
        for words, sub_tech, sub_plain in subrules:
            if _has_any(lower, words):
                tech, plain = sub_tech, sub_plain
                break
        return tech + environment_suffix(lower) if technical else plain
    return ''


def progress_indicator(text: str, technical: bool = True) -> str:
    m = _INDICATOR_RE.search(text.lower())
    if not m:
        return ''
    obj = _keep_object(_words_from(text, m.end(), INDICATOR_MAX_WORDS), technical)
    if not obj:
        return ''
    return f"{capitalize_first(m.group(1))} {obj}"


def action_sentence(text: str, technical: bool = True) -> str:
    for sentence in split_sentences(text):
        if _ACTION_SENTENCE_RE.search(sentence.lower()):
            phrase = capitalize_first(sentence.rstrip('.!? '))
            return phrase if technical else plain_wording(phrase)
    return ''


def detected_topics(text: str, technical: bool = True) -> str:
    if not technical:
        return ''
    lower = text.lower()
    topics = [topic for words, topic in TOPIC_RULES if any(w in lower for w in words)]
    if not topics:
        return ''
    return 'Work on ' + ', '.join(topics[:TOPIC_LIMIT])


def raw_text(text: str, technical: bool = True) -> str:
    sentences = split_sentences(text)
    phrase = capitalize_first(sentences[0] if sentences else text.strip())
    return phrase if technical else plain_wording(phrase)


STAGES: Tuple[Tuple[str, Callable[[str, bool], str]], ...] = (
    ('technical', technical_activity),
    ('development', development_activity),
    ('infrastructure', infrastructure_activity),
    ('progress', progress_indicator),
    ('action_sentence', action_sentence),
    ('topics', detected_topics),
    ('raw', raw_text),
)


def extract_with_stage(text: str, technical: bool = True) -> Tuple[str, Optional[str]]:
    """Return (phrase, stage name); ('', None) for blank text."""
    if not text or not text.strip():
        return '', None
    text = ' '.join(text.split())
    for name, stage in STAGES:
        phrase = stage(text, technical)
        if phrase:
            return truncate_text(phrase.strip(), ITEM_MAX_LENGTH), name
    return '', None


def extract_phrase(text: str, technical: bool = True) -> str:
    return extract_with_stage(text, technical)[0]


# --- bucketing -------------------------------------------------------------------

def classify_bucket(text: str) -> str:
    lower = (text or '').lower()
    if _has_any(lower, COMPLETED_WORDS):
        return 'completed'
    if _has_any(lower, IN_PROGRESS_WORDS):
        return 'in_progress'
    return 'general'


def bucket_for_completion(completion_status: str) -> str:
    return ISSUE_BUCKETS.get(completion_status, 'general')


def canonical_token(source_text: str, phrase: str) -> str:
    lower = (source_text or '').lower()
    for token in CANONICAL_TOKENS:
        if contains_word(lower, token):
            return token
    return ' '.join(re.sub(r"[^\w\s/]", ' ', phrase.lower()).split())


class SummaryItem:
    def __init__(self, bucket: str, phrase: str, token: str):
        self.bucket = bucket
        self.phrase = phrase
        self.token = token

    @classmethod
    def from_text(cls, text: str, bucket: str, technical: bool = True) -> Optional['SummaryItem']:
        phrase = extract_phrase(text, technical)
        if not phrase:
            return None
        return cls(bucket, phrase, canonical_token(text, phrase))

    def __repr__(self):
        return f"SummaryItem({self.bucket!r}, {self.phrase!r})"


def group_items(items: Iterable[SummaryItem], max_per_bucket: int) -> Dict[str, List[str]]:
    """Phrases per bucket, first item per canonical token, at most max_per_bucket each."""
    grouped: Dict[str, List[str]] = {b: [] for b in BUCKETS}
    seen: Dict[str, set] = {b: set() for b in BUCKETS}
    for item in items:
        if item.token in seen[item.bucket] or len(grouped[item.bucket]) >= max_per_bucket:
            continue
        seen[item.bucket].add(item.token)
        grouped[item.bucket].append(item.phrase)
    return grouped


def compose_summary(items: Iterable[SummaryItem], max_per_bucket: int, max_length: int) -> str:
    """
    "Completed: a; b. In progress: c. Also: d", truncated to max_length.
    Returns '' when there is nothing to say.
    """
    grouped = group_items(items, max_per_bucket)
    present = [b for b in BUCKETS if grouped[b]]
    if not present:
        return ''
    if present == ['general']:
        return truncate_text('; '.join(grouped['general']), max_length)
    sections = [f"{BUCKET_LABELS[b]}: {'; '.join(grouped[b])}" for b in present]
    return truncate_text('. '.join(sections), max_length)


__all__ = [
    "extract_phrase", "extract_with_stage", "plain_wording", "classify_bucket", "bucket_for_completion",
    "canonical_token", "SummaryItem", "group_items", "compose_summary", "STAGES",
]
