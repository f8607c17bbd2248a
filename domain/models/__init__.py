"""Models package - contains database models.

Note: AI solution parsing lives in domain/ai, the submission pipeline in
infra/services.
"""

# Database Models (SQLAlchemy ORM)
from .core import (
    User,
    LearningSession,
)
from .submission import ProblemSubmission, SubmissionStatus, InvalidStatusTransition
from .audit import AuditLog

__all__ = [
    "User",
    "LearningSession",
    "ProblemSubmission",
    "SubmissionStatus",
    "InvalidStatusTransition",
    "AuditLog",
]
