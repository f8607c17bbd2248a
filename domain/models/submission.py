"""
Problem submission database models.
Contains: ProblemSubmission, SubmissionStatus
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from app.db import Base


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionStatus.COMPLETED, SubmissionStatus.ERROR)


# pending -> processing -> {completed | error}; nothing leaves a terminal state
_ALLOWED_TRANSITIONS = {
    SubmissionStatus.PENDING: {SubmissionStatus.PROCESSING, SubmissionStatus.COMPLETED, SubmissionStatus.ERROR},
    SubmissionStatus.PROCESSING: {SubmissionStatus.COMPLETED, SubmissionStatus.ERROR},
    SubmissionStatus.COMPLETED: set(),
    SubmissionStatus.ERROR: set(),
}


class InvalidStatusTransition(Exception):
    pass


class ProblemSubmission(Base):
    """Database model for a problem submitted by a learner and its AI solution"""
    __tablename__ = "problem_submissions"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("learning_sessions.id"), nullable=True, index=True)

    # Input
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    input_type = Column(String(10), nullable=False)
    text_content = Column(Text, nullable=True)
    image_data = Column(Text, nullable=True)
    voice_url = Column(Text, nullable=True)

    # Processing
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING.value, index=True)
    solution = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    topic = Column(String(100), nullable=True)
    subject = Column(String(100), nullable=True)
    difficulty = Column(String(10), nullable=True)
    tags = Column(JSON, nullable=True)
    ai_response = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)

    # Integrity
    content_hash = Column(String(64), nullable=False)
    security_flags = Column(JSON, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="submissions")
    session = relationship("LearningSession", back_populates="submissions")

    def transition_to(self, status: SubmissionStatus) -> None:
        current = SubmissionStatus(self.status)
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(f"Cannot move submission {self.id} from {current.value} to {status.value}")
        self.status = status.value

    def add_security_flags(self, **flags: bool) -> None:
        merged = dict(self.security_flags or {})
        merged.update(flags)
        self.security_flags = merged

    def mark_completed(
        self,
        solution: str,
        explanation: Optional[str],
        subject: str,
        difficulty: str,
        tags: List[str],
        ai_response: Dict[str, Any],
    ) -> None:
        if not solution:
            raise ValueError(f"Submission {self.id} cannot be completed without a solution")
        self.transition_to(SubmissionStatus.COMPLETED)
        self.solution = solution
        self.explanation = explanation
        self.topic = subject
        self.subject = subject
        self.difficulty = difficulty
        self.tags = list(tags)
        self.ai_response = ai_response
        self.error_message = None

    def mark_error(self, message: str) -> None:
        self.transition_to(SubmissionStatus.ERROR)
        self.error_message = message
        self.solution = None

    def to_row(self) -> Dict[str, Any]:
        """Row shape returned by the status store."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "title": self.title,
            "input_type": self.input_type,
            "status": self.status,
            "solution": self.solution,
            "explanation": self.explanation,
            "topic": self.topic,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "tags": self.tags,
            "ai_response": self.ai_response,
            "error_message": self.error_message,
            "content_hash": self.content_hash,
            "processing_time_ms": self.processing_time_ms,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
