# gamcoach/model/__init__.py
"""Additive model decoding and scoring"""

from .description import ModelDescription, load_model_description
from .scoring import ScoringModel
from .local import LocalScoringModel

__all__ = [
    'ModelDescription',
    'load_model_description',
    'ScoringModel',
    'LocalScoringModel'
]
