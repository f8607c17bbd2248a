"""Async client for submitting problems and following them to completion."""

from .client import ProblemSubmitter, build_request_body, resolve_identity
from .errors import StatusQueryError, SubmissionFailed
from .models import AuthContext, AuthSession, PollingConfig, ProblemResult, ProblemSubmissionData
from .polling import PollHandle, fetch_submission_row, normalize_submission_row, poll_for_completion

__all__ = [
    'AuthContext',
    'AuthSession',
    'PollHandle',
    'PollingConfig',
    'ProblemResult',
    'ProblemSubmissionData',
    'ProblemSubmitter',
    'StatusQueryError',
    'SubmissionFailed',
    'build_request_body',
    'fetch_submission_row',
    'normalize_submission_row',
    'poll_for_completion',
    'resolve_identity',
]
