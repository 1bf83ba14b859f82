"""
Prompt builders for the remote synthesizer.
Prompts are style specific and always state the maximum summary length.
"""
from typing import List, Optional

from aggregate.keywords import TECHNICAL_TERMS
from synthesis.config import SynthesisConfig
from synthesis.text import contains_word
from tracker.models import Comment, Issue, WorklogEntry

MAX_PROMPT_ISSUES = 5
MAX_PROMPT_COMMENTS = 8
MAX_PROMPT_WORKLOGS = 10
MAX_DESCRIPTION_LENGTH = 500

STYLE_INSTRUCTIONS = {
    'technical': (
        "You are writing an update for a DevOps team standup. Focus on technical implementation "
        "details and name the tools involved.\n"
        "Group related work, for example:\n"
        "Infrastructure: Terraform changes, AWS services, Kubernetes deployments\n"
        "Development: features, fixes, tests and code reviews"
    ),
    'business': (
        "You are writing an update for a business stakeholder. Describe deliverables and their "
        "business impact rather than implementation details.\n"
        "Relate the work to project milestones and highlight the business value delivered."
    ),
    'brief': (
        "Write a very brief, concise standup update.\n"
        "Mention only the most important, high-impact activities."
    ),
}

# (keywords, label), first hit wins
PRIORITY_EMOJIS = (
    (('critical', 'highest'), '🔥'),
    (('high',), '⚡'),
    (('medium',), '📋'),
    (('low', 'lowest'), '📝'),
)
DEFAULT_PRIORITY_EMOJI = '📋'

ISSUE_TYPE_CONTEXT = (
    (('bug',), '🐛 Bug Fix'),
    (('feature', 'story'), '✨ Feature'),
    (('task',), '📋 Task'),
    (('epic',), '🎯 Epic'),
    (('improvement',), '🔧 Improvement'),
)
DEFAULT_ISSUE_TYPE_CONTEXT = '📋 Work'

ACTIVITY_TYPES = (
    (('completed', 'done', 'finished', 'resolved'), '✅ Completed'),
    (('deployed', 'released'), '🚀 Deployed'),
    (('blocked', 'waiting', 'stuck'), '🚫 Blocked'),
    (('test',), '🧪 Testing'),
    (('investigat', 'debug', 'looking into'), '🔍 Investigating'),
    (('working on', 'implementing', 'in progress'), '⚙️ Working'),
)
DEFAULT_ACTIVITY_TYPE = '📝 Update'


def get_priority_emoji(priority: str) -> str:
    lower = (priority or '').lower()
    for words, emoji in PRIORITY_EMOJIS:
        if lower in words:
            return emoji
    return DEFAULT_PRIORITY_EMOJI


def get_issue_type_context(issue_type: str) -> str:
    lower = (issue_type or '').lower()
    for words, label in ISSUE_TYPE_CONTEXT:
        if any(w in lower for w in words):
            return label
    return DEFAULT_ISSUE_TYPE_CONTEXT


def determine_activity_type(text: str) -> str:
    lower = (text or '').lower()
    for words, label in ACTIVITY_TYPES:
        if any(w in lower for w in words):
            return label
    return DEFAULT_ACTIVITY_TYPE


def extract_technical_terms(text: str) -> List[str]:
    lower = (text or '').lower()
    return [t for t in TECHNICAL_TERMS if contains_word(lower, t)]


def _time_of(comment: Comment) -> str:
    return comment.created.strftime('%H:%M') if comment.created else '--:--'


def _length_line(config: SynthesisConfig) -> str:
    return f"Keep the summary under {config.max_summary_length} characters."


class PromptBuilder:
    """Builds prompts for one configuration."""

    def __init__(self, config: Optional[SynthesisConfig] = None):
        self.config = config or SynthesisConfig()

    def style_instructions(self) -> str:
        return STYLE_INSTRUCTIONS.get(self.config.summary_style, STYLE_INSTRUCTIONS['technical'])

    def issue_prompt(self, issue: Issue) -> str:
        lines = [
            'Summarize this Jira ticket for a daily standup report. Be concise and focus on what work is being done:',
            '',
            f"Ticket: {issue.key}",
            f"Project: {issue.project_key}",
            f"Status: {issue.status}",
            f"Priority: {issue.priority}",
            f"Type: {issue.issue_type}",
            f"Summary: {issue.summary}",
        ]
        if issue.description and len(issue.description) < MAX_DESCRIPTION_LENGTH:
            lines.append(f"Description: {issue.description}")
        lines += ['', self.style_instructions(), _length_line(self.config), '', 'Provide a 1-2 sentence summary suitable for a standup report:']
        return '\n'.join(lines)

    def comments_prompt(self, comments: List[Comment]) -> str:
        lines = ['Summarize the following comments made today for a daily standup report. Focus on what work was accomplished:', '']
        for comment in comments[:MAX_PROMPT_COMMENTS]:
            lines.append(f"Comment at {_time_of(comment)}: {comment.body}")
        lines += ['', _length_line(self.config), '', 'Provide a 1-2 sentence summary of the work progress described in these comments:']
        return '\n'.join(lines)

    def worklog_prompt(self, worklogs: List[WorklogEntry]) -> str:
        lines = ['Summarize the following work log entries for a daily standup report:', '']
        for w in worklogs[:MAX_PROMPT_WORKLOGS]:
            started = w.started.strftime('%b %d') if w.started else 'unknown date'
            lines.append(f"- {w.issue_id} ({started}): {w.comment}")
        lines += ['', _length_line(self.config), '', 'Provide a brief summary of the work accomplished:']
        return '\n'.join(lines)

    def _issue_lines(self, issues: List[Issue]) -> List[str]:
        if not issues:
            return []
        lines = ['Recent Issues:']
        for issue in issues[:MAX_PROMPT_ISSUES]:
            lines.append(
                f"- {get_priority_emoji(issue.priority)} {issue.key} [{get_issue_type_context(issue.issue_type)}]: "
                f"{issue.summary} (Status: {issue.status})"
            )
        lines.append('')
        return lines

    def _comment_lines(self, comments: List[Comment]) -> List[str]:
        if not comments:
            return []
        lines = ["Today's Comments (showing actual work done):"]
        for comment in comments[:MAX_PROMPT_COMMENTS]:
            lines.append(f"- {determine_activity_type(comment.body)} {_time_of(comment)}: {comment.body}")
        lines.append('')
        return lines

    def standup_prompt(self, issues: List[Issue], worklogs: List[WorklogEntry]) -> str:
        lines = ['Create a brief standup summary based on this Jira activity:', '']
        lines += self._issue_lines(issues)
        if worklogs:
            lines += [f"Work logged on {len(worklogs)} items", '']
        lines += [self.style_instructions(), _length_line(self.config), '',
                  'Provide a 2-3 sentence summary for daily standup covering what was worked on and current status:']
        return '\n'.join(lines)

    def enhanced_standup_prompt(self, issues: List[Issue], comments: List[Comment], worklogs: List[WorklogEntry]) -> str:
        lines = [self.style_instructions(), '',
                 'Create a standup summary based on this Jira activity with detailed comment analysis:', '']
        lines += self._issue_lines(issues)
        lines += self._comment_lines(comments)
        if worklogs:
            lines += [f"Work logged on {len(worklogs)} items", '']
        if self.config.include_technical_keywords():
            corpus = ' '.join([i.text() for i in issues[:MAX_PROMPT_ISSUES]] + [c.body or '' for c in comments[:MAX_PROMPT_COMMENTS]])
            terms = extract_technical_terms(corpus)
            if terms:
                lines += [f"Technical focus: {', '.join(terms)}", '']
        lines += [
            'Provide a 2-3 sentence summary for daily standup that focuses on:',
            '1. Key work accomplished',
            '2. Current status and any blockers',
            '3. Next steps or work ready for deployment',
            _length_line(self.config),
            '',
            'Summary:',
        ]
        return '\n'.join(lines)


__all__ = [
    "PromptBuilder", "get_priority_emoji", "get_issue_type_context", "determine_activity_type",
    "extract_technical_terms", "STYLE_INSTRUCTIONS",
]
