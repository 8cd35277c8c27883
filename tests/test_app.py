"""
Import-level checks for the application and its table definitions.
"""

import importlib

import pytest

from quizgen.database import Base


@pytest.mark.unit
def test_app_module_imports():
    main = importlib.import_module("quizgen.main")

    paths = {route.path for route in main.app.routes}
    assert {"/generate-quiz", "/health", "/"} <= paths


@pytest.mark.unit
def test_all_tables_registered():
    importlib.import_module("quizgen.models")

    assert {
        "profiles",
        "quizzes",
        "questions",
        "quiz_questions",
        "quiz_attempts",
        "seen_questions",
    } <= set(Base.metadata.tables)


@pytest.mark.unit
def test_question_timestamp_has_server_default():
    from quizgen.models import Question

    assert Question.__table__.c.text.type.__class__.__name__ == "Text"
    assert Question.__table__.c.created_at.server_default is not None
    assert "CURRENT_TIMESTAMP" in str(Question.__table__.c.created_at.server_default.arg)
