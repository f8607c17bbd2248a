"""API routers (preferred import path)."""

from .submit_problem import router as submit_problem_router
from .system import router as system_router
from .submissions import router as submissions_router

__all__ = [
    "submit_problem_router",
    "submissions_router",
    "system_router",
]
