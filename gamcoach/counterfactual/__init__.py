# gamcoach/counterfactual/__init__.py
"""Counterfactual option generation, optimization and search"""

from .coach import GAMCoach, CounterfactualResult, SearchState
from .constraints import Constraints
from .exceptions import MissingTargetRangeError, TargetAlreadyReachedError
from .plans import PlanGenerator
from .solver import PulpSolver, SolverResult

__all__ = [
    'GAMCoach',
    'CounterfactualResult',
    'SearchState',
    'Constraints',
    'MissingTargetRangeError',
    'TargetAlreadyReachedError',
    'PlanGenerator',
    'PulpSolver',
    'SolverResult'
]
