# gamcoach/__init__.py
"""Counterfactual explanations for additive, bin-based models"""

from .config import Config
from .model import ScoringModel, LocalScoringModel, ModelDescription, load_model_description
from .counterfactual import GAMCoach, Constraints, PlanGenerator

__all__ = [
    'Config',
    'ScoringModel',
    'LocalScoringModel',
    'ModelDescription',
    'load_model_description',
    'GAMCoach',
    'Constraints',
    'PlanGenerator'
]
