"""
Database models package
"""
from quizgen.models.profile import Profile
from quizgen.models.quiz import Quiz
from quizgen.models.question import Question, QuizQuestion
from quizgen.models.quiz_attempt import QuizAttempt
from quizgen.models.seen_question import SeenQuestion

__all__ = ["Profile", "Quiz", "Question", "QuizQuestion", "QuizAttempt", "SeenQuestion"]
