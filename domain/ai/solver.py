"""
Problem Solver - sinh lời giải cho bài tập của học sinh bằng LLM (Groq).

Model được yêu cầu trả về JSON có cấu trúc (solution, explanation, subject,
difficulty, tags, learning_objectives). Nếu model trả về text tự do, ta rơi về
heuristic dò từ khoá theo dòng để đoán subject/difficulty.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import re

from app.settings import AI_MAX_OUTPUT_TOKENS, AI_MAX_RETRIES, AI_TEMPERATURE, GROQ_MODEL
from infra.utils.llm_utils import (
    create_groq_completion,
    extract_groq_content,
    generate_with_backoff,
    get_groq_api_key,
    get_groq_client,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "General"
DEFAULT_DIFFICULTY = "medium"
DIFFICULTIES = ("easy", "medium", "hard")
MAX_TAGS = 5

# Thứ tự quan trọng: từ khoá đầu tiên khớp sẽ thắng
_SUBJECT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Mathematics", ("math",)),
    ("Science", ("science", "physics", "chemistry", "biology")),
    ("History", ("history",)),
    ("English", ("english", "literature")),
]

SYSTEM_PROMPT = (
    "You are a secure AI tutor helping students learn. Analyze the problem and provide a detailed, "
    "educational solution that helps the student understand both the answer and the underlying concepts. "
    "Ensure all content is appropriate for educational purposes.\n\n"
    "Return ONLY a valid JSON object with these keys:\n"
    '- "solution": a clear, step-by-step solution\n'
    '- "explanation": an educational explanation of the concepts involved\n'
    '- "subject": one of "Mathematics", "Science", "History", "English", "General"\n'
    '- "difficulty": one of "easy", "medium", "hard"\n'
    '- "tags": 3-5 short, lowercase educational tags\n'
    '- "learning_objectives": a list of learning objectives achieved\n'
    "DO NOT include extra text outside JSON."
)


class AIServiceUnavailable(Exception):
    """The AI backend is not configured (no API key)."""


class AIProcessingError(Exception):
    """The AI backend failed or returned nothing usable."""


@dataclass
class SolutionAnalysis:
    """Kết quả đã chuẩn hoá từ phản hồi của model"""
    solution: str
    explanation: Optional[str] = None
    subject: str = DEFAULT_SUBJECT
    difficulty: str = DEFAULT_DIFFICULTY
    tags: List[str] = field(default_factory=list)
    learning_objectives: List[str] = field(default_factory=list)
    # False khi phải dùng heuristic (model không trả JSON)
    structured: bool = True

    def to_ai_response(self, model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "structured_output": self.structured,
            "suggested_tags": list(self.tags),
            "parsed_subject": self.subject,
            "parsed_difficulty": self.difficulty,
            "learning_objectives": list(self.learning_objectives),
            "security_validated": True,
        }


def build_solution_prompt(
    title: str,
    content_hash: str,
    description: Optional[str] = None,
    text_content: Optional[str] = None,
) -> str:
    prompt = (
        "SECURITY CONTEXT:\n"
        "- Content has been sanitized and validated\n"
        f"- Content integrity verified with hash: {content_hash[:8]}...\n\n"
        "PROBLEM DETAILS:\n"
        f"Title: {title}\n"
    )
    if description:
        prompt += f"Description: {description}\n"
    if text_content:
        prompt += f"Problem Content: {text_content}\n"
    return prompt


def normalize_subject(value: Any) -> Optional[str]:
    """Map free text onto a known subject; None if nothing matches."""
    if not isinstance(value, str) or not value:
        return None
    lowered = value.lower()
    for subject, keywords in _SUBJECT_KEYWORDS:
        if any(k in lowered for k in keywords):
            return subject
    if lowered.strip() == DEFAULT_SUBJECT.lower():
        return DEFAULT_SUBJECT
    return None


def normalize_difficulty(value: Any) -> str:
    if not isinstance(value, str):
        return DEFAULT_DIFFICULTY
    lowered = value.strip().lower()
    return lowered if lowered in DIFFICULTIES else DEFAULT_DIFFICULTY


def normalize_tags(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    tags: List[str] = []
    for v in values:
        if not isinstance(v, str):
            continue
        tag = v.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags[:MAX_TAGS]


def fallback_tags(subject: str) -> List[str]:
    return ["learning", "education", subject.lower()]


def infer_subject_and_difficulty(text: str) -> Tuple[str, str]:
    """Heuristic dò từ khoá theo dòng (chỉ dùng khi không có JSON).

    Dòng chứa "subject"/"area" quyết định subject, dòng chứa "difficulty"
    quyết định độ khó. Dễ sai - chỉ là phương án dự phòng.
    """
    subject = DEFAULT_SUBJECT
    difficulty = DEFAULT_DIFFICULTY
    for line in text.split("\n"):
        lower_line = line.lower()
        if "subject" in lower_line or "area" in lower_line:
            subject = normalize_subject(lower_line) or subject
        if "difficulty" in lower_line:
            if "easy" in lower_line:
                difficulty = "easy"
            elif "hard" in lower_line:
                difficulty = "hard"
            else:
                difficulty = "medium"
    return subject, difficulty


def _load_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        # Nếu parse trực tiếp lỗi (vd: bọc trong ```json), thử trích xuất JSON từ text
        json_match = re.search(r"\{.*\}", text, re.DOTALL)
        if not json_match:
            return None
        try:
            parsed = json.loads(json_match.group())
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def parse_solution_response(text: str) -> SolutionAnalysis:
    text = (text or "").strip()
    if not text:
        raise AIProcessingError("No solution generated")

    parsed = _load_json_object(text)
    solution = parsed.get("solution") if parsed else None
    if isinstance(solution, str) and solution.strip():
        subject = normalize_subject(parsed.get("subject")) or DEFAULT_SUBJECT
        explanation = parsed.get("explanation")
        objectives = parsed.get("learning_objectives")
        return SolutionAnalysis(
            solution=solution.strip(),
            explanation=explanation.strip() if isinstance(explanation, str) and explanation.strip() else None,
            subject=subject,
            difficulty=normalize_difficulty(parsed.get("difficulty")),
            tags=normalize_tags(parsed.get("tags")) or fallback_tags(subject),
            learning_objectives=[o for o in objectives if isinstance(o, str)] if isinstance(objectives, list) else [],
            structured=True,
        )

    logger.warning("AI response was not structured JSON, falling back to keyword heuristic")
    subject, difficulty = infer_subject_and_difficulty(text)
    return SolutionAnalysis(
        solution=text,
        subject=subject,
        difficulty=difficulty,
        tags=fallback_tags(subject),
        structured=False,
    )


class ProblemSolver:
    """Gọi Groq để giải bài tập và chuẩn hoá kết quả."""

    def __init__(self, model: str = GROQ_MODEL):
        self.model = model

    def is_configured(self) -> bool:
        return get_groq_api_key() is not None

    def solve(
        self,
        title: str,
        content_hash: str,
        description: Optional[str] = None,
        text_content: Optional[str] = None,
    ) -> SolutionAnalysis:
        if not self.is_configured():
            raise AIServiceUnavailable("AI service temporarily unavailable")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_solution_prompt(title, content_hash, description, text_content)},
        ]

        try:
            client = get_groq_client()
            response = generate_with_backoff(
                lambda: create_groq_completion(
                    client,
                    messages,
                    model=self.model,
                    temperature=AI_TEMPERATURE,
                    max_tokens=AI_MAX_OUTPUT_TOKENS,
                    response_format={"type": "json_object"},
                ),
                max_retries=AI_MAX_RETRIES,
            )
        except Exception as e:
            logger.error(f"AI backend call failed: {e}")
            raise AIProcessingError(str(e)) from e

        return parse_solution_response(extract_groq_content(response))


_problem_solver: Optional[ProblemSolver] = None


def get_problem_solver() -> ProblemSolver:
    """Lấy instance của ProblemSolver"""
    global _problem_solver
    if _problem_solver is None:
        _problem_solver = ProblemSolver()
    return _problem_solver
