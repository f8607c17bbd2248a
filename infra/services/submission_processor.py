"""
Submission Processor - xử lý một bài nộp từ lúc nhận request đến lúc có lời giải.

Các bước:
- Validate + sanitize input
- Xác định danh tính (user đã đăng nhập hoặc guest mới) và learning session
- Lưu bài nộp ở trạng thái `processing` kèm content hash
- Gọi AI backend, lưu kết quả cuối (`completed` hoặc `error`)
- Ghi audit log cho lúc tạo và lúc hoàn thành
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.settings import ALLOWED_INPUT_TYPES, MAX_IMAGE_DATA_MB
from domain.ai import AIProcessingError, AIServiceUnavailable, ProblemSolver
from domain.models import AuditLog, LearningSession, ProblemSubmission, SubmissionStatus, User
from infra.utils.validation import generate_content_hash, generate_uuid, is_valid_uuid, sanitize_input

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_MESSAGE = "AI service temporarily unavailable"
NO_SOLUTION_MESSAGE = "No solution generated"

# input_type -> field bắt buộc phải có nội dung
_CONTENT_FIELD_BY_TYPE = {
    "text": "text_content",
    "image": "image_data",
    "voice": "voice_url",
}


class SubmissionError(Exception):
    """Lỗi có status code, router chuyển thành JSON envelope `{success: false, ...}`."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        problem_id: Optional[str] = None,
        details: str = "Secure processing failed",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.problem_id = problem_id
        self.details = details

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "details": self.details,
        }
        if self.problem_id:
            body["problemId"] = self.problem_id
        return body


@dataclass
class SecurityContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_fingerprint: Optional[str] = None


@dataclass
class SubmissionInput:
    input_type: Optional[str]
    title: Optional[str]
    description: Optional[str] = None
    text_content: Optional[str] = None
    image_data: Optional[str] = None
    voice_url: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    security_context: SecurityContext = field(default_factory=SecurityContext)


class SubmissionProcessor:
    def __init__(self, db: Session, solver: ProblemSolver):
        self.db = db
        self.solver = solver

    def process(self, data: SubmissionInput, auth_user_id: Optional[str] = None) -> Dict[str, Any]:
        """Chạy toàn bộ pipeline và trả về JSON envelope khi thành công.

        Raise `SubmissionError` cho mọi lỗi có thể báo cho client.
        """
        if not data.input_type or not data.title:
            raise SubmissionError("Missing required fields: input_type and title are required", 400)
        if data.input_type not in ALLOWED_INPUT_TYPES:
            raise SubmissionError(f"Unsupported input_type: {data.input_type}", 400)

        title = sanitize_input(data.title)
        if not title:
            raise SubmissionError("title must not be empty after sanitization", 400)
        description = sanitize_input(data.description) if data.description else None
        text_content = sanitize_input(data.text_content) if data.text_content else None

        self._validate_content(data, text_content)

        user_id = self._resolve_user(data.user_id, auth_user_id)
        session = self._resolve_session(user_id, data.session_id, data.security_context)

        content_hash = generate_content_hash(text_content or data.image_data or data.voice_url or "")

        submission = ProblemSubmission(
            id=generate_uuid(),
            user_id=user_id,
            session_id=session.id,
            title=title,
            description=description,
            input_type=data.input_type,
            text_content=text_content,
            image_data=data.image_data or None,
            voice_url=data.voice_url or None,
            status=SubmissionStatus.PROCESSING.value,
            content_hash=content_hash,
            security_flags={
                "validated": True,
                "sanitized": True,
                "hash_verified": True,
                "session_validated": True,
            },
        )
        self.db.add(submission)
        self._audit(
            user_id,
            "problem_submission_created",
            submission.id,
            {"title": title, "input_type": data.input_type, "security_level": "enhanced"},
            data.security_context,
        )
        self.db.commit()
        logger.info(f"Created problem submission {submission.id} for user {user_id} (session {session.id})")

        problem_id = submission.id
        try:
            self._solve(submission, session, user_id, title, description, text_content, content_hash)
        except SubmissionError:
            raise
        except Exception as e:
            # Dòng đã commit ở trạng thái `processing`: phải kết thúc bằng `error`
            logger.exception(f"Unexpected failure while processing problem {problem_id}")
            self.db.rollback()
            message = f"Processing failed: {e}"
            if not SubmissionStatus(submission.status).is_terminal:
                self._fail(submission, message)
            raise SubmissionError(message, 500, problem_id=problem_id)

        return {
            "success": True,
            "problemId": submission.id,
            "sessionId": session.id,
            "status": submission.status,
            "solution": submission.solution,
            "subject": submission.subject,
            "difficulty": submission.difficulty,
            "tags": submission.tags,
            "security": {
                "validated": True,
                "sanitized": True,
                "hash_verified": True,
            },
        }

    def _validate_content(self, data: SubmissionInput, text_content: Optional[str]) -> None:
        required = _CONTENT_FIELD_BY_TYPE[data.input_type]
        value = text_content if required == "text_content" else getattr(data, required)
        if not value:
            raise SubmissionError(f"{required} is required for {data.input_type} input type", 400)
        if data.image_data and len(data.image_data) > MAX_IMAGE_DATA_MB * 1024 * 1024:
            raise SubmissionError(f"image_data exceeds {MAX_IMAGE_DATA_MB} MB", 413)

    def _resolve_user(self, body_user_id: Optional[str], auth_user_id: Optional[str]) -> str:
        if body_user_id and not is_valid_uuid(body_user_id):
            raise SubmissionError("Invalid user ID format", 400)
        if auth_user_id and body_user_id and body_user_id.lower() != auth_user_id.lower():
            raise SubmissionError("user_id does not match the authenticated user", 403)

        user_id = (auth_user_id or body_user_id or "").lower()
        if not user_id:
            # Không có danh tính => tạo guest user mới
            user_id = generate_uuid()
            self.db.add(User.guest(user_id))
            self.db.flush()
            logger.info(f"Generated guest user {user_id}")
            return user_id

        if self.db.get(User, user_id) is None:
            self.db.add(User.mirrored(user_id))
            self.db.flush()
            logger.info(f"Mirrored user profile for {user_id}")
        return user_id

    def _resolve_session(
        self,
        user_id: str,
        session_id: Optional[str],
        security_context: SecurityContext,
    ) -> LearningSession:
        if session_id:
            if not is_valid_uuid(session_id):
                raise SubmissionError("Invalid session ID format", 400)
            session = self.db.get(LearningSession, session_id.lower())
            if session is None or session.user_id != user_id:
                raise SubmissionError("Invalid learning session", 403)
            return session

        session = LearningSession(
            id=generate_uuid(),
            user_id=user_id,
            session_start=datetime.utcnow(),
            total_problems=0,
            subjects_covered=[],
            session_metadata={
                "security_level": "enhanced",
                "ip_address": security_context.ip_address,
                "user_agent": security_context.user_agent,
                "device_fingerprint": security_context.device_fingerprint,
            },
        )
        self.db.add(session)
        self.db.flush()
        logger.info(f"Created learning session {session.id}")
        return session

    def _solve(
        self,
        submission: ProblemSubmission,
        session: LearningSession,
        user_id: str,
        title: str,
        description: Optional[str],
        text_content: Optional[str],
        content_hash: str,
    ) -> None:
        """Gọi AI và ghi trạng thái cuối (`completed` hoặc `error`)."""
        try:
            analysis = self.solver.solve(
                title=title,
                content_hash=content_hash,
                description=description,
                text_content=text_content,
            )
        except AIServiceUnavailable:
            logger.error("GROQ_API_KEY not configured; marking submission as error")
            self._fail(submission, AI_UNAVAILABLE_MESSAGE)
            raise SubmissionError(AI_UNAVAILABLE_MESSAGE, 503, problem_id=submission.id, details="AI backend not configured")
        except AIProcessingError as e:
            message = f"AI processing error: {e}"
            self._fail(submission, message)
            raise SubmissionError(message, 502, problem_id=submission.id, details="Upstream AI error")

        solution = sanitize_input(analysis.solution or "")
        if not solution:
            logger.error(f"AI solution for problem {submission.id} is empty after sanitization")
            self._fail(submission, NO_SOLUTION_MESSAGE)
            raise SubmissionError(NO_SOLUTION_MESSAGE, 502, problem_id=submission.id, details="Upstream AI error")
        explanation = sanitize_input(analysis.explanation) if analysis.explanation else None

        submission.mark_completed(
            solution=solution,
            explanation=explanation,
            subject=analysis.subject,
            difficulty=analysis.difficulty,
            tags=analysis.tags,
            ai_response=analysis.to_ai_response(self.solver.model),
        )
        submission.add_security_flags(ai_processing_completed=True, solution_sanitized=True)
        submission.processing_time_ms = self._elapsed_ms(submission)
        session.record_problem(analysis.subject)
        self._audit(
            user_id,
            "problem_submission_completed",
            submission.id,
            {
                "status": SubmissionStatus.COMPLETED.value,
                "subject": analysis.subject,
                "difficulty": analysis.difficulty,
                "security_level": "enhanced",
            },
        )
        self.db.commit()
        logger.info(f"Completed problem submission {submission.id} in {submission.processing_time_ms} ms")

    def _fail(self, submission: ProblemSubmission, message: str) -> None:
        submission.mark_error(message)
        submission.add_security_flags(ai_processing_failed=True)
        submission.processing_time_ms = self._elapsed_ms(submission)
        self.db.commit()

    def _audit(
        self,
        user_id: str,
        action: str,
        resource_id: str,
        new_values: Dict[str, Any],
        security_context: Optional[SecurityContext] = None,
    ) -> None:
        self.db.add(AuditLog(
            id=generate_uuid(),
            user_id=user_id,
            action=action,
            resource_type="problem_submission",
            resource_id=resource_id,
            new_values=new_values,
            ip_address=security_context.ip_address if security_context else None,
            user_agent=security_context.user_agent if security_context else None,
        ))

    @staticmethod
    def _elapsed_ms(submission: ProblemSubmission) -> Optional[int]:
        if submission.created_at is None:
            return None
        return int((datetime.utcnow() - submission.created_at).total_seconds() * 1000)
