"""
Tests for prompt construction.
"""

import pytest

from quizgen.services.prompt_builder import GENERIC_RULE, PromptBuilder


@pytest.fixture
def builder() -> PromptBuilder:
    return PromptBuilder()


@pytest.mark.unit
@pytest.mark.parametrize("focus,keyword", [
    ("SSC CGL", "geometry"),
    ("ssc chsl", "trigonometry"),
    ("Bank PO", "data interpretation"),
    ("IBPS bank clerk", "arithmetic"),
    ("UPSC Prelims", "statement-based"),
])
def test_focus_specific_rules(builder: PromptBuilder, focus: str, keyword: str):
    assert keyword in builder.focus_rule(focus)


@pytest.mark.unit
def test_unknown_focus_uses_generic_rule(builder: PromptBuilder):
    assert builder.focus_rule("General Knowledge") == GENERIC_RULE
    assert builder.focus_rule("") == GENERIC_RULE


@pytest.mark.unit
def test_build_includes_request_details(builder: PromptBuilder):
    prompts = builder.build("Trigonometry", "hard", "SSC CGL", 15)

    assert "exactly 15 hard multiple-choice questions on Trigonometry" in prompts.user
    assert "SSC CGL" in prompts.user
    assert "geometry" in prompts.user


@pytest.mark.unit
def test_system_prompt_mandates_json_only(builder: PromptBuilder):
    system = builder.build("Algebra", "easy", "General Knowledge", 5).system

    assert "JSON array" in system
    assert "correct_answer" in system
    assert "no prose" in system
