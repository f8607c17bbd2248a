"""AI solution domain exports."""

from .solver import (
    AIProcessingError,
    AIServiceUnavailable,
    ProblemSolver,
    SolutionAnalysis,
    get_problem_solver,
    parse_solution_response,
)

__all__ = [
    'AIProcessingError',
    'AIServiceUnavailable',
    'ProblemSolver',
    'SolutionAnalysis',
    'get_problem_solver',
    'parse_solution_response',
]
