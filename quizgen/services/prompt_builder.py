"""
Prompt construction for quiz generation
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Prompts:
    system: str
    user: str


# (focus marker, instruction) checked in order against the upper-cased focus
FOCUS_RULES: Tuple[Tuple[str, str], ...] = (
    (
        "SSC",
        "Follow the SSC pattern: emphasize geometry, trigonometry and algebra, "
        "with short calculation-based questions that can be solved in under a minute.",
    ),
    (
        "BANK",
        "Follow the banking exam pattern: emphasize arithmetic (percentages, ratios, "
        "interest, profit and loss) and data interpretation from small tables or series.",
    ),
    (
        "UPSC",
        "Follow the UPSC pattern: prefer statement-based analytical questions "
        "(e.g. 'Consider the following statements... Which of the above is/are correct?') "
        "that test conceptual understanding over rote recall.",
    ),
)

GENERIC_RULE = (
    "Cover the topic in a balanced way: mix conceptual, factual and applied questions "
    "and avoid repeating the same sub-topic."
)

SYSTEM_PROMPT = """You are a quiz generator for government exam preparation.

Output a JSON array of question objects and nothing else. Each object has exactly 6 fields:
question, option_1, option_2, option_3, option_4, correct_answer.

Rules:
- correct_answer is an integer 0, 1, 2 or 3 pointing at the correct option (0 = option_1)
- Every question has exactly 4 distinct options and exactly one correct answer
- Use plain text for math (e.g. "2x + 3y = 12"), never LaTeX or dollar signs
- All text must be valid JSON string content (escape quotes and newlines)
- No explanations, no markdown, no code fences, no prose before or after the JSON"""


class PromptBuilder:
    """Builds the system and user prompts for a generation request"""

    def focus_rule(self, focus: str) -> str:
        """Instruction block matching the exam focus (case-insensitive substring)"""
        upper = (focus or "").upper()
        for marker, rule in FOCUS_RULES:
            if marker in upper:
                return rule
        return GENERIC_RULE

    def build(self, topic: str, difficulty: str, focus: str, question_count: int) -> Prompts:
        user = (
            f"Generate exactly {question_count} {difficulty} multiple-choice questions on {topic}.\n"
            f"Exam focus: {focus}.\n"
            f"{self.focus_rule(focus)}\n"
            f"All questions must match the {difficulty} difficulty level.\n"
            "Return only the JSON array."
        )
        return Prompts(system=SYSTEM_PROMPT, user=user)


# Global instance
prompt_builder = PromptBuilder()
