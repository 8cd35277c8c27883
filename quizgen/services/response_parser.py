"""
Parsing and repair of the model's JSON output

Flow:
1. Unwrap markdown code fences
2. Strict json.loads
3. On failure, an ordered chain of pure text repairs, each fed the previous
   repair's output and re-parsed: control-character sanitation, truncation
   closing, stray-backslash escaping
4. Shape validation: every question must be either the full shape
   {question, options[4], correctIndex, difficulty?, explanation?} or the compact
   shape {question, option_1..option_4, correct_answer}; both normalize to
   ParsedQuestion. One bad item fails the whole batch.
"""
from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from quizgen.exceptions import InvalidShape, Malformed

logger = logging.getLogger(__name__)

SIMPLE_ESCAPES = '"\\/bfnrt'
HEX_DIGITS = "0123456789abcdefABCDEF"
CONTROL_ESCAPES = {"\b": "\\b", "\t": "\\t", "\n": "\\n", "\f": "\\f", "\r": "\\r"}


@dataclass(frozen=True)
class ParsedQuestion:
    """Single internal question shape used past the parser boundary"""
    question: str
    options: Tuple[str, str, str, str]
    correct_index: int
    difficulty: str
    explanation: str = ""


class QuestionShape(str, Enum):
    FULL = "full"
    COMPACT = "compact"


class FullQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    correctIndex: int = Field(..., ge=0, le=3, strict=True)
    difficulty: Optional[str] = None
    explanation: Optional[str] = None

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question text is blank")
        return value


class CompactQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    option_1: str
    option_2: str
    option_3: str
    option_4: str
    correct_answer: int = Field(..., ge=0, le=3, strict=True)

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question text is blank")
        return value


# --------------------------------------------------------------------------
# Text helpers
# --------------------------------------------------------------------------

def unwrap(text: str) -> str:
    """Strip surrounding ``` / ```json fences and whitespace"""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline == -1:
            cleaned = cleaned[3:]
            if cleaned.lower().startswith("json"):
                cleaned = cleaned[4:]
        else:
            cleaned = cleaned[first_newline + 1:]
        cleaned = cleaned.rstrip()
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
    return cleaned.strip()


def _escape_length(text: str, i: int) -> int:
    """Length of the recognized escape sequence starting at text[i], or 0"""
    if i + 1 >= len(text):
        return 0
    nxt = text[i + 1]
    if nxt in SIMPLE_ESCAPES:
        return 2
    if nxt == "u" and len(text) >= i + 6 and all(c in HEX_DIGITS for c in text[i + 2:i + 6]):
        return 6
    return 0


def sanitize_control_characters(text: str) -> str:
    """
    Replace raw control characters with their JSON escapes

    Inside strings \\b \\t \\n \\f \\r become escapes and any other control
    byte becomes a space. Between tokens tab/newline/CR are legal whitespace
    and are kept. Recognized escape sequences are copied verbatim.
    """
    out: List[str] = []
    in_string = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            length = _escape_length(text, i)
            if length:
                out.append(text[i:i + length])
                i += length
                continue
            out.append(ch)
        elif ch == '"':
            in_string = not in_string
            out.append(ch)
        elif ord(ch) < 0x20:
            if in_string:
                out.append(CONTROL_ESCAPES.get(ch, " "))
            elif ch in "\t\n\r":
                out.append(ch)
            else:
                out.append(" ")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _scan_structure(text: str) -> Tuple[bool, List[str]]:
    """Whether the text ends inside a string, and the stack of open brackets"""
    in_string = False
    stack: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]" and stack:
            stack.pop()
        i += 1
    return in_string, stack


def close_truncated_json(text: str) -> str:
    """
    Close a cut-off JSON document

    An open string is terminated first, a dangling comma is dropped, then the
    missing ] and } are appended innermost first.
    """
    repaired = text.rstrip()
    in_string, _ = _scan_structure(repaired)
    if in_string:
        if repaired.endswith("\\"):
            repaired = repaired[:-1]
        repaired += '"'

    repaired = repaired.rstrip()
    while repaired.endswith(","):
        repaired = repaired[:-1].rstrip()
    if repaired.endswith(":"):
        repaired += " null"

    _, stack = _scan_structure(repaired)
    closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    return repaired + closers


def escape_stray_backslashes(text: str) -> str:
    """Double any backslash that does not start a recognized escape"""
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            length = _escape_length(text, i)
            if length:
                out.append(text[i:i + length])
                i += length
                continue
            out.append("\\\\")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def _escape_error(error: json.JSONDecodeError) -> bool:
    return "escape" in error.msg.lower()


Repair = Callable[[str], str]

# Ordered repair chain: (name, repair, applies-to-error predicate)
REPAIR_CHAIN: Sequence[Tuple[str, Repair, Callable[[json.JSONDecodeError], bool]]] = (
    ("control_characters", sanitize_control_characters, lambda error: True),
    ("truncation", close_truncated_json, lambda error: True),
    ("escapes", escape_stray_backslashes, _escape_error),
)


def build_diagnostics(text: str, error: json.JSONDecodeError) -> Dict[str, Any]:
    """Details that tell truncation apart from corruption in the logs"""
    open_braces = text.count("{")
    close_braces = text.count("}")
    open_brackets = text.count("[")
    close_brackets = text.count("]")
    brace_mismatch = open_braces != close_braces
    bracket_mismatch = open_brackets != close_brackets

    if brace_mismatch or bracket_mismatch:
        summary = ("Response appears to be truncated or incomplete JSON. "
                   "The AI may have hit token limits.")
    elif _escape_error(error):
        summary = ("JSON contains invalid escape sequences. "
                   "This may be due to LaTeX math expressions in the content.")
    else:
        summary = "Invalid JSON format received"

    start = max(0, error.pos - 100)
    end = min(len(text), error.pos + 100)
    return {
        "summary": summary,
        "parse_error": error.msg,
        "error_position": error.pos,
        "context": text[start:end],
        "json_length": len(text),
        "open_braces": open_braces,
        "close_braces": close_braces,
        "open_brackets": open_brackets,
        "close_brackets": close_brackets,
        "brace_mismatch": brace_mismatch,
        "bracket_mismatch": bracket_mismatch,
    }


# --------------------------------------------------------------------------
# Parser
# --------------------------------------------------------------------------

class ResponseParser:
    """Turns raw model text into a validated batch of ParsedQuestion"""

    def parse(self, raw_text: str, difficulty: str, expected_count: int) -> List[ParsedQuestion]:
        """
        Parse, repair and validate a model response

        Args:
            raw_text: Text returned by the model
            difficulty: Requested difficulty, stamped onto every question
            expected_count: Number of questions the caller asked for

        Returns:
            Exactly expected_count questions

        Raises:
            Malformed: JSON could not be parsed even after repairs
            InvalidShape: JSON parsed but the questions are not usable
        """
        payload = self.parse_json(raw_text)
        questions = self.normalize(payload, difficulty)

        if len(questions) < expected_count:
            raise InvalidShape(
                details=f"Expected {expected_count} questions, got {len(questions)}"
            )
        if len(questions) > expected_count:
            logger.warning(f"Model returned {len(questions)} questions, keeping first {expected_count}")
            questions = questions[:expected_count]
        return questions

    def parse_json(self, raw_text: str) -> Any:
        text = unwrap(raw_text)
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            first_error = error

        logger.warning(
            f"Model JSON failed to parse at position {first_error.pos}: {first_error.msg}; trying repairs"
        )
        candidate = text
        last_error = first_error
        applied: List[str] = []
        for name, repair, applies in REPAIR_CHAIN:
            if not applies(last_error):
                continue
            repaired = repair(candidate)
            if repaired == candidate:
                continue
            candidate = repaired
            applied.append(name)
            try:
                payload = json.loads(candidate)
            except json.JSONDecodeError as error:
                last_error = error
                continue
            logger.info(f"Model JSON repaired by {' + '.join(applied)}")
            return payload

        diagnostics = build_diagnostics(text, first_error)
        logger.error(
            f"Failed to parse model JSON: {first_error.msg} at {first_error.pos}, "
            f"length={diagnostics['json_length']}, "
            f"braces={diagnostics['open_braces']}/{diagnostics['close_braces']}, "
            f"brackets={diagnostics['open_brackets']}/{diagnostics['close_brackets']}"
        )
        raise Malformed(diagnostics["summary"], diagnostics=diagnostics)

    def normalize(self, payload: Any, difficulty: str) -> List[ParsedQuestion]:
        """Resolve each item's shape and convert to ParsedQuestion"""
        items = self._question_items(payload)
        if not items:
            raise InvalidShape("No questions generated")

        questions = []
        for index, item in enumerate(items):
            questions.append(self._normalize_item(index, item, difficulty))
        return questions

    def _question_items(self, payload: Any) -> List[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
            return payload["questions"]
        raise InvalidShape(details="Expected questions array")

    def _normalize_item(self, index: int, item: Any, difficulty: str) -> ParsedQuestion:
        if not isinstance(item, dict):
            raise InvalidShape(f"Invalid question format at index {index}", details="Question is not an object")

        shape = detect_shape(item)
        try:
            if shape is QuestionShape.COMPACT:
                compact = CompactQuestion.model_validate(item)
                return ParsedQuestion(
                    question=compact.question.strip(),
                    options=(compact.option_1, compact.option_2, compact.option_3, compact.option_4),
                    correct_index=compact.correct_answer,
                    difficulty=difficulty,
                    explanation="",
                )
            full = FullQuestion.model_validate(item)
        except ValidationError as e:
            logger.error(f"Invalid question at index {index}: {e.errors()}")
            raise InvalidShape(
                f"Invalid question format at index {index}",
                details="Each question must have question text, exactly 4 options and a correct index of 0, 1, 2, or 3",
            )

        return ParsedQuestion(
            question=full.question.strip(),
            options=tuple(full.options),
            correct_index=full.correctIndex,
            difficulty=difficulty,
            explanation=full.explanation or "",
        )


def detect_shape(item: Dict[str, Any]) -> QuestionShape:
    """Compact items are recognized by their option_N / correct_answer fields"""
    if "options" in item or "correctIndex" in item:
        return QuestionShape.FULL
    if "correct_answer" in item or any(f"option_{n}" in item for n in range(1, 5)):
        return QuestionShape.COMPACT
    return QuestionShape.FULL


# Global instance
response_parser = ResponseParser()
