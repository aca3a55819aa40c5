# gamcoach/counterfactual/constraints.py
"""
User constraints derived from the feature configurations of a model.

Every feature of a model description carries a difficulty level and
optional monotonicity or range requirements. This module turns them into
the features allowed to vary, per-feature distance multipliers and
acceptable ranges used by the counterfactual search.
"""
from typing import Any, Dict, List, Optional, Sequence

from ..config import DIFFICULTY_LEVELS, DIFFICULTY_MULTIPLIERS, ConstraintConfig
from ..model.description import ModelDescription

LOCK = 'lock'
NEUTRAL = 'neutral'


def continuous_integer_features(model: ModelDescription) -> List[str]:
    """
    Continuous features requiring integer values.

    Features that also use a transform are left out: for them the integer
    requirement only applies to the displayed value.
    """
    return [
        f.name for f in model.continuous_features
        if f.config.requires_int and f.config.uses_transform is None
    ]


class Constraints:
    """Difficulties and acceptable ranges of the features of one sample."""

    def __init__(
        self,
        model: ModelDescription,
        sample: Sequence[Any],
        max_num_features_to_vary: Optional[int] = 4
    ):
        """
        Reads the predefined constraints of every feature.

        A feature without an explicit acceptable range but requiring to
        increase (decrease) gets the range [current value, max edge]
        ([min edge, current value]).

        Args:
            model: The decoded model description.
            sample: The sample the constraints apply to.
            max_num_features_to_vary: Cap on the number of changed features.
        """
        self.model = model
        self.max_num_features_to_vary = max_num_features_to_vary
        self.difficulties: Dict[str, str] = {}
        self.acceptable_ranges: Dict[str, List[Any]] = {}

        for feature in model.features:
            config = feature.config
            if config.difficulty != 3:
                self.difficulties[feature.name] = DIFFICULTY_LEVELS[config.difficulty]

            if config.acceptable_range is not None:
                self.acceptable_ranges[feature.name] = list(config.acceptable_range)
            elif feature.is_continuous and config.requires_increasing:
                self.acceptable_ranges[feature.name] = [sample[feature.index], self._max_edge(feature)]
            elif feature.is_continuous and config.requires_decreasing:
                self.acceptable_ranges[feature.name] = [float(feature.bin_edges[0]), sample[feature.index]]

    @staticmethod
    def _max_edge(feature) -> float:
        if feature.upper_edge != float('inf'):
            return float(feature.upper_edge)
        return float(feature.bin_edges[-1])

    @property
    def all_feature_names(self) -> List[str]:
        return self.model.feature_names

    def set_difficulty(self, name: str, difficulty: str):
        """Sets the difficulty of a feature; 'neutral' removes the entry."""
        if difficulty not in DIFFICULTY_MULTIPLIERS and difficulty != LOCK:
            raise ValueError(f"Unknown difficulty '{difficulty}'")
        self.model.feature(name)
        if difficulty == NEUTRAL:
            self.difficulties.pop(name, None)
        else:
            self.difficulties[name] = difficulty

    def set_acceptable_range(self, name: str, acceptable_range: Optional[Sequence[Any]]):
        """Sets the acceptable range of a feature; None removes it."""
        self.model.feature(name)
        if acceptable_range is None:
            self.acceptable_ranges.pop(name, None)
        else:
            self.acceptable_ranges[name] = list(acceptable_range)

    @property
    def feature_weight_multipliers(self) -> Dict[str, float]:
        return {
            name: DIFFICULTY_MULTIPLIERS[difficulty]
            for name, difficulty in self.difficulties.items()
            if difficulty not in (LOCK, NEUTRAL)
        }

    @property
    def features_to_vary(self) -> Optional[List[str]]:
        """Every feature that is not locked, or None when no feature is locked."""
        if LOCK not in self.difficulties.values():
            return None
        return [name for name in self.all_feature_names if self.difficulties.get(name) != LOCK]

    @property
    def feature_ranges(self) -> Dict[str, List[Any]]:
        return dict(self.acceptable_ranges)

    def to_constraint_config(self, target_range: Optional[Sequence[float]] = None) -> ConstraintConfig:
        """Converts the constraints to the configuration consumed by GAMCoach."""
        return ConstraintConfig(
            features_to_vary=self.features_to_vary,
            feature_ranges=self.feature_ranges,
            feature_weight_multipliers=self.feature_weight_multipliers,
            max_num_features_to_vary=self.max_num_features_to_vary,
            continuous_integer_features=continuous_integer_features(self.model),
            target_range=list(target_range) if target_range is not None else None
        )

    def to_dict(self) -> Dict[str, Any]:
        """Returns a clean serializable copy of the constraints."""
        return {
            'difficulties': dict(self.difficulties),
            'acceptableRanges': {k: list(v) for k, v in self.acceptable_ranges.items()},
            'allFeatureNames': list(self.all_feature_names),
            'maxNumFeaturesToVary': self.max_num_features_to_vary
        }
