"""
Core database models.
Contains: User, LearningSession
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from app.db import Base

GUEST_PREFERENCES = {
    "privacy_level": "high",
    "data_retention": "session_only",
}


class User(Base):
    """User profile mirrored from the external auth provider (or a minted guest)"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(150), nullable=False)
    last_name = Column(String(150), nullable=False)
    is_guest = Column(Boolean, default=False, nullable=False, index=True)
    preferences = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sessions = relationship("LearningSession", back_populates="user", cascade="all, delete-orphan")
    submissions = relationship("ProblemSubmission", back_populates="user", cascade="all, delete-orphan")

    @classmethod
    def guest(cls, user_id: str) -> "User":
        return cls(
            id=user_id,
            email=f"guest-{user_id}@secure.local",
            first_name="Guest",
            last_name="User",
            is_guest=True,
            preferences=dict(GUEST_PREFERENCES),
        )

    @classmethod
    def mirrored(cls, user_id: str) -> "User":
        """Placeholder profile for an identity issued by the auth provider."""
        return cls(
            id=user_id,
            email=f"user-{user_id}@external.local",
            first_name="",
            last_name="",
            is_guest=False,
        )


class LearningSession(Base):
    """Groups the submissions of one learning session"""
    __tablename__ = "learning_sessions"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_start = Column(DateTime, default=datetime.utcnow)
    session_end = Column(DateTime, nullable=True)
    total_problems = Column(Integer, default=0, nullable=False)
    subjects_covered = Column(JSON, nullable=True)
    session_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="sessions")
    submissions = relationship("ProblemSubmission", back_populates="session")

    def record_problem(self, subject: str) -> None:
        """Bump session statistics after a completed submission."""
        self.total_problems = (self.total_problems or 0) + 1
        covered = list(self.subjects_covered or [])
        if subject and subject not in covered:
            covered.append(subject)
        # Gán list mới để SQLAlchemy nhận ra thay đổi của cột JSON
        self.subjects_covered = covered
