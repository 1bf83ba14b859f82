from datetime import datetime, timezone

import pytest

from synthesis.config import SynthesisConfig
from synthesis.prompts import (
    PromptBuilder,
    determine_activity_type,
    extract_technical_terms,
    get_issue_type_context,
    get_priority_emoji,
)
from tracker.models import Comment, Issue, WorklogEntry


@pytest.mark.parametrize("priority,emoji", [('Critical', '🔥'), ('HIGH', '⚡'), ('Low', '📝'), ('', '📋'), ('whenever', '📋')])
def test_priority_emoji(priority, emoji):
    assert get_priority_emoji(priority) == emoji


def test_issue_type_and_activity_labels():
    assert get_issue_type_context('User Story') == '✨ Feature'
    assert get_issue_type_context('Bug') == '🐛 Bug Fix'
    assert get_issue_type_context('Spike') == '📋 Work'
    assert determine_activity_type('Completed Terraform apply') == '✅ Completed'
    assert determine_activity_type('Investigating database permission issue') == '🔍 Investigating'
    assert determine_activity_type('Ran some tests') == '🧪 Testing'
    assert determine_activity_type('Hello') == '📝 Update'


def test_extract_technical_terms_whole_words():
    assert extract_technical_terms('Terraform apply on AWS Lambda') == ['terraform', 'aws', 'lambda']
    assert extract_technical_terms('restful grapes') == []


def _issues(n):
    return [Issue(f"DEV-{i}", summary=f"Terraform task {i}", status='In Progress', priority='High', issue_type='Task') for i in range(n)]


def _comments(n):
    return [Comment(str(i), f"Completed step {i}", created=datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)) for i in range(n)]


def test_enhanced_prompt_caps_and_length_line():
    prompt = PromptBuilder(SynthesisConfig()).enhanced_standup_prompt(_issues(7), _comments(10), [WorklogEntry('1')])
    assert sum(1 for line in prompt.splitlines() if line.startswith('- ⚡ DEV-')) == 5
    assert sum(1 for line in prompt.splitlines() if line.startswith('- ✅ Completed 09:00')) == 8
    assert 'Keep the summary under 200 characters.' in prompt
    assert 'Technical focus: terraform' in prompt
    assert 'Work logged on 1 items' in prompt


def test_business_prompt_has_no_technical_focus():
    prompt = PromptBuilder(SynthesisConfig(summary_style='business', max_summary_length=120)).enhanced_standup_prompt(_issues(2), [], [])
    assert 'business impact' in prompt
    assert 'Technical focus' not in prompt
    assert 'Keep the summary under 120 characters.' in prompt


def test_issue_prompt_skips_long_description():
    builder = PromptBuilder(SynthesisConfig(summary_style='brief'))
    short = builder.issue_prompt(Issue('DEV-1', summary='S', description='Short description'))
    long = builder.issue_prompt(Issue('DEV-1', summary='S', description='x' * 600))
    assert 'Description: Short description' in short
    assert 'Description:' not in long
    assert 'very brief' in short


def test_comment_and_worklog_prompts():
    builder = PromptBuilder()
    comments = builder.comments_prompt(_comments(1) + [Comment('x', 'no time')])
    assert 'Comment at 09:00: Completed step 0' in comments
    assert 'Comment at --:--: no time' in comments
    worklog = builder.worklog_prompt([WorklogEntry('100', comment='note', started=datetime(2025, 1, 10, tzinfo=timezone.utc))])
    assert '- 100 (Jan 10): note' in worklog
    assert 'Keep the summary under 200 characters.' in builder.standup_prompt([], [])
