"""
Problem classification and response parsing.

Both halves are pure functions over immutable text: the classifier picks a
prompt template for a problem statement, the parser pulls structured fields
out of whatever the model sent back and never raises.
"""

import re
from dataclasses import dataclass
from enum import Enum

DEFAULT_COMPLEXITY = "O(n)"


class ProblemCategory(Enum):
    """Kinds of problem the prompt templates distinguish"""

    MULTIPLE_CHOICE = "multiple-choice"
    NUMERIC = "numeric"
    PROGRAMMING = "programming"
    GENERAL = "general"


SOLUTION_SYSTEM_PROMPT = (
    "You are a technical interview expert with deep knowledge of algorithms, "
    "data structures, and optimal problem-solving techniques. Your solutions "
    "must be accurate, efficient, and address all edge cases. For multiple "
    "choice questions, provide only the final answer letter without "
    "explanation. For programming problems, focus on correctness first, then "
    "optimization, and state the Time Complexity and Space Complexity on "
    "their own lines."
)

PROMPT_TEMPLATES = {
    ProblemCategory.MULTIPLE_CHOICE: (
        "This is a multiple choice question. Analyze it carefully and determine "
        "the correct answer.\n"
        "Only provide the letter of the correct answer (A, B, C, or D) without "
        "explanation.\n"
        "Question: {problem}"
    ),
    ProblemCategory.NUMERIC: (
        "This is a numerical/mathematical problem. Solve it step by step and "
        "provide the final answer.\n"
        "Keep your solution clear and concise.\n"
        "Problem: {problem}"
    ),
    ProblemCategory.PROGRAMMING: (
        "You are a skilled programmer. Solve this coding problem with the most "
        "efficient and clear approach.\n"
        "First, analyze the problem.\n"
        "Then, develop an efficient algorithm.\n"
        "Finally, write clean implementation code in a single fenced code block.\n"
        "End with 'Time Complexity:' and 'Space Complexity:' lines.\n"
        "Problem: {problem}"
    ),
    ProblemCategory.GENERAL: (
        "Analyze and solve the following problem accurately and efficiently:\n"
        "{problem}\n\n"
        "Provide a detailed, step-by-step solution that addresses all "
        "requirements and edge cases."
    ),
}


class ProblemClassifier:
    """Classify problem text into exactly one ProblemCategory"""

    # Checked in this order; the first category with a matching pattern wins
    CATEGORY_PATTERNS = (
        (
            ProblemCategory.MULTIPLE_CHOICE,
            (
                re.compile(r"\([A-D]\)"),
                re.compile(r"[A-D]\)"),
                re.compile(r"Option [A-D]", re.IGNORECASE),
            ),
        ),
        (
            ProblemCategory.NUMERIC,
            (
                re.compile(r"calculate|compute|find the value", re.IGNORECASE),
                re.compile(r"\d+(\.\d+)?[×÷+\-=]"),
            ),
        ),
        (
            ProblemCategory.PROGRAMMING,
            (
                re.compile(
                    r"code|algorithm|function|class|program|implement",
                    re.IGNORECASE,
                ),
            ),
        ),
    )

    @classmethod
    def classify(cls, problem: str) -> ProblemCategory:
        for category, patterns in cls.CATEGORY_PATTERNS:
            if any(pattern.search(problem) for pattern in patterns):
                return category
        return ProblemCategory.GENERAL

    @staticmethod
    def build_prompt(problem: str, category: ProblemCategory) -> str:
        return PROMPT_TEMPLATES[category].format(problem=problem)


@dataclass(frozen=True)
class ParsedSolution:
    """
    Fields pulled out of a raw model answer.

    ``answer``, ``code_block`` and the complexity fields are ``None`` when
    the pattern was absent; the properties apply the fallbacks.
    """

    full_text: str
    answer: str | None = None
    code_block: str | None = None
    time_complexity: str | None = None
    space_complexity: str | None = None

    @property
    def solution_text(self) -> str:
        return self.answer if self.answer is not None else self.full_text

    @property
    def code(self) -> str:
        if self.answer is not None:
            return self.answer
        if self.code_block:
            return self.code_block
        return self.full_text

    @property
    def time(self) -> str:
        return self.time_complexity or DEFAULT_COMPLEXITY

    @property
    def space(self) -> str:
        return self.space_complexity or DEFAULT_COMPLEXITY


class ResponseParser:
    """Extract answer letter, code block and complexity from model text"""

    ANSWER_PATTERNS = (
        re.compile(r"^([A-D])$"),
        re.compile(r"^The answer is ([A-D])\.?$", re.IGNORECASE),
        re.compile(r"^Option ([A-D])\.?$", re.IGNORECASE),
    )
    CODE_BLOCK_PATTERN = re.compile(r"```(?:[\w+#.-]+)?[^\S\n]*\n?([\s\S]*?)```")
    # The value may sit on the line after a heading-style label
    TIME_PATTERN = re.compile(r"Time Complexity:?\s*(.*?)(?=\n|$)", re.IGNORECASE)
    SPACE_PATTERN = re.compile(r"Space Complexity:?\s*(.*?)(?=\n|$)", re.IGNORECASE)

    @classmethod
    def parse(cls, text: str | None, category: ProblemCategory) -> ParsedSolution:
        text = text or ""
        answer = None
        code_block = None

        if category is ProblemCategory.MULTIPLE_CHOICE:
            answer = cls.extract_answer(text)
        else:
            code_block = cls.extract_code_block(text)

        return ParsedSolution(
            full_text=text,
            answer=answer,
            code_block=code_block,
            time_complexity=cls._extract_complexity(cls.TIME_PATTERN, text),
            space_complexity=cls._extract_complexity(cls.SPACE_PATTERN, text),
        )

    @classmethod
    def extract_answer(cls, text: str) -> str | None:
        stripped = text.strip()
        for pattern in cls.ANSWER_PATTERNS:
            match = pattern.match(stripped)
            if match:
                return match.group(1).upper()
        return None

    @classmethod
    def extract_code_block(cls, text: str) -> str | None:
        match = cls.CODE_BLOCK_PATTERN.search(text)
        if not match:
            return None
        code = match.group(1).strip()
        return code or None

    @staticmethod
    def _extract_complexity(pattern: re.Pattern[str], text: str) -> str | None:
        match = pattern.search(text)
        if not match:
            return None
        # "**Time Complexity:** O(n)" leaves markdown emphasis around the value
        value = match.group(1).strip().strip("*_`:").strip()
        return value or None


def detect_language(code: str | None) -> str | None:
    """Best-effort guess at the language of an extracted code snippet"""
    if not code:
        return None
    if "public class" in code or "import java" in code:
        return "java"
    if "function" in code:
        return "javascript"
    if "def " in code:
        return "python"
    return None
