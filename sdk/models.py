"""Data passed between the app layer and the submission SDK."""

from dataclasses import dataclass
from typing import List, Optional

TERMINAL_STATUSES = ("completed", "error")
POLLABLE_STATUSES = ("processing", "pending")


@dataclass
class ProblemSubmissionData:
    """What the learner entered."""
    title: str
    input_type: str = "text"  # 'text' | 'image' | 'voice'
    text_content: Optional[str] = None
    image_data: Optional[str] = None  # base64 encoded image
    voice_url: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ProblemResult:
    id: str
    status: str  # pending | processing | completed | error
    solution: Optional[str] = None
    explanation: Optional[str] = None
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class AuthSession:
    """A live session from the auth provider."""
    access_token: str
    user_id: Optional[str] = None


@dataclass
class AuthContext:
    """Identity and credentials for one call.

    Passed explicitly to `submit` and to the polling loop instead of being read
    from a global auth singleton.
    """
    session: Optional[AuthSession] = None
    user_id: Optional[str] = None
    is_authenticated: bool = False
    is_guest: bool = False

    @classmethod
    def guest(cls) -> "AuthContext":
        return cls(is_guest=True)

    @classmethod
    def signed_in(cls, user_id: str, access_token: str) -> "AuthContext":
        return cls(
            session=AuthSession(access_token=access_token, user_id=user_id),
            user_id=user_id,
            is_authenticated=True,
        )

    @property
    def bearer_token(self) -> Optional[str]:
        if self.session and self.session.access_token:
            return self.session.access_token
        return None


@dataclass
class PollingConfig:
    initial_delay: float = 1.0
    interval: float = 2.0
    max_attempts: int = 60  # ~2 minutes with 2-second intervals
