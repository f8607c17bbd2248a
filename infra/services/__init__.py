"""Core services package

Bao gồm các service chính:
- SubmissionProcessor: pipeline xử lý bài nộp (lưu DB, gọi AI, audit log)
"""
from .submission_processor import SecurityContext, SubmissionError, SubmissionInput, SubmissionProcessor

__all__ = [
    'SecurityContext',
    'SubmissionError',
    'SubmissionInput',
    'SubmissionProcessor',
]
