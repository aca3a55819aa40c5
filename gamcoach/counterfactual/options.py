# gamcoach/counterfactual/options.py
"""
Candidate value changes ("options") for counterfactual search.

For every changeable feature, the OptionGenerator enumerates the bins the
feature could move to. Each option carries the score gain of that move and
its distance cost. Options for interaction terms are derived from pairs of
main-effect options and only carry the part of the gain that the two main
options do not already account for.
"""
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..model.description import CategoricalFeature, ContinuousFeature, InteractionTerm
from ..model.scoring import ScoringModel

MAIN = 'main'
INTERACTION = 'interaction'


@dataclass(frozen=True)
class VariableId:
    """Identifies one decision variable of the optimization model."""
    kind: str
    feature_index: int
    bin_index: int
    other_feature_index: Optional[int] = None
    other_bin_index: Optional[int] = None

    @classmethod
    def main(cls, feature_index: int, bin_index: int) -> 'VariableId':
        return cls(MAIN, feature_index, bin_index)

    @classmethod
    def interaction(cls, parent1: 'VariableId', parent2: 'VariableId') -> 'VariableId':
        return cls(INTERACTION, parent1.feature_index, parent1.bin_index,
                   parent2.feature_index, parent2.bin_index)

    @property
    def is_interaction(self) -> bool:
        return self.kind == INTERACTION

    @property
    def parents(self) -> Tuple['VariableId', 'VariableId']:
        if not self.is_interaction:
            raise ValueError(f"{self.name} is not an interaction variable")
        return (VariableId.main(self.feature_index, self.bin_index),
                VariableId.main(self.other_feature_index, self.other_bin_index))

    @property
    def name(self) -> str:
        """Solver-safe variable name."""
        if self.is_interaction:
            return f"z_{self.feature_index}_{self.bin_index}_{self.other_feature_index}_{self.other_bin_index}"
        return f"x_{self.feature_index}_{self.bin_index}"


@dataclass(frozen=True)
class ContinuousOption:
    """Moves a continuous feature to a value inside another bin."""
    feature_index: int
    bin_index: int
    target: float
    score_gain: float
    distance: float
    # Part of the score gain coming from each touched interaction term.
    interaction_gains: Mapping[int, float] = field(default_factory=dict)

    @property
    def variable_id(self) -> VariableId:
        return VariableId.main(self.feature_index, self.bin_index)

    @property
    def encoded_target(self) -> float:
        return self.target


@dataclass(frozen=True)
class CategoricalOption:
    """Moves a categorical feature to another level."""
    feature_index: int
    bin_index: int
    # The level label as it appears in samples.
    target: Any
    # The numeric level code of the target.
    level: int
    score_gain: float
    distance: float
    interaction_gains: Mapping[int, float] = field(default_factory=dict)

    @property
    def variable_id(self) -> VariableId:
        return VariableId.main(self.feature_index, self.bin_index)

    @property
    def encoded_target(self) -> float:
        return self.level


MainOption = Union[ContinuousOption, CategoricalOption]


@dataclass(frozen=True)
class InteractionOption:
    """Joint selection of two main-effect options touching the same interaction."""
    interaction_index: int
    parents: Tuple[VariableId, VariableId]
    targets: Tuple[Any, Any]
    score_gain: float
    distance: float = 0.0

    @property
    def variable_id(self) -> VariableId:
        return VariableId.interaction(*self.parents)

    @property
    def bin_indexes(self) -> Tuple[int, int]:
        return self.parents[0].bin_index, self.parents[1].bin_index


def prune_similar_options(options: List[MainOption], sim_threshold: float) -> List[MainOption]:
    """
    Drops costlier options whose score gain is close to a cheaper option.

    Options are sorted by distance. For every kept option, the costlier
    options after it are scanned and removed in place when their gain is
    within `sim_threshold`. After a removal the scan moves on to the next
    index, so the option that slid into the removed slot is not compared
    against the current one.
    """
    options = sorted(options, key=lambda o: o.distance)
    i = 0
    while i < len(options):
        j = i + 1
        while j < len(options):
            if abs(options[i].score_gain - options[j].score_gain) < sim_threshold:
                del options[j]
            j += 1
        i += 1
    return options


class OptionGenerator:
    """Enumerates options for the features and interactions of one sample."""

    def __init__(
        self,
        scoring_model: ScoringModel,
        sample: Sequence[Any],
        direction: int,
        epsilon: float = 1e-4,
        continuous_integer_features: Iterable[str] = (),
        score_gain_bound: Optional[float] = None,
        filter_direction: bool = True
    ):
        """
        Initializes the generator for one sample.

        Args:
            scoring_model: The scoring engine of the model.
            sample: The sample to explain, in feature order.
            direction: +1 if the score must increase, -1 if it must decrease.
            epsilon: Offset below a bin's upper edge used for left-side targets.
            continuous_integer_features: Continuous features that require integer targets.
            score_gain_bound: Options whose gain goes beyond this bound are discarded.
            filter_direction: If False, options moving the score the wrong way are kept.
        """
        if direction not in (1, -1):
            raise ValueError("direction must be 1 or -1")
        self.scoring_model = scoring_model
        self.model = scoring_model.model
        self.sample = list(sample)
        self.direction = direction
        self.epsilon = epsilon
        self.continuous_integer_features = set(continuous_integer_features)
        self.score_gain_bound = score_gain_bound
        self.filter_direction = filter_direction

        self.encoded_sample = scoring_model.encode_sample(self.sample)
        self.current_bins = [
            scoring_model.main_bin(f, v) for f, v in zip(self.model.features, self.encoded_sample)
        ]

    def _interaction_gains(self, feature_index: int, encoded_target: float) -> Dict[int, float]:
        """Gain of every interaction touching a feature when only that feature changes."""
        gains = {}
        for term in self.model.interactions_of(feature_index):
            new_sample = list(self.encoded_sample)
            new_sample[feature_index] = encoded_target
            gains[term.index] = (
                self.scoring_model.interaction_score(term, new_sample)
                - self.scoring_model.interaction_score(term, self.encoded_sample)
            )
        return gains

    def _keep(self, score_gain: float) -> bool:
        if self.filter_direction and score_gain * self.direction <= 0:
            return False
        if self.score_gain_bound is not None and (score_gain - self.score_gain_bound) * self.direction > 0:
            return False
        return True

    def _continuous_target(self, feature: ContinuousFeature, bin_index: int, current_bin: int) -> Optional[float]:
        requires_int = feature.name in self.continuous_integer_features
        lower, _ = feature.bin_range(bin_index)
        has_next = bin_index + 1 < feature.num_bins
        next_lower = float(feature.bin_edges[bin_index + 1]) if has_next else math.inf

        if bin_index < current_bin:
            if requires_int:
                target = math.ceil(next_lower) - 1
            else:
                target = next_lower - self.epsilon
            if target < lower:
                return None
        else:
            target = math.ceil(lower) if requires_int else lower
            if target >= next_lower:
                return None
        # Subtracting epsilon from a large edge can round back onto the edge.
        if feature.bin_of(target) != bin_index:
            return None
        return int(target) if requires_int else float(target)

    def gen_continuous_options(self, feature: ContinuousFeature, sim_threshold: float = 0.0) -> List[ContinuousOption]:
        """
        Enumerates the options of a continuous feature.

        Args:
            feature: The continuous feature.
            sim_threshold: Options whose gain is within this threshold of a
                           cheaper option are pruned.

        Returns:
            Options sorted by ascending distance.
        """
        current_value = self.encoded_sample[feature.index]
        current_bin = self.current_bins[feature.index]
        current_score = float(feature.scores[current_bin])
        mad = self.model.cont_mads.get(feature.name)

        options = []
        for bin_index in range(feature.num_bins):
            if bin_index == current_bin:
                continue
            target = self._continuous_target(feature, bin_index, current_bin)
            if target is None:
                continue

            distance = abs(target - current_value)
            if mad is not None and mad > 0:
                distance /= mad

            interaction_gains = self._interaction_gains(feature.index, target)
            score_gain = float(feature.scores[bin_index]) - current_score + sum(interaction_gains.values())
            if not self._keep(score_gain):
                continue

            options.append(ContinuousOption(
                feature_index=feature.index,
                bin_index=bin_index,
                target=target,
                score_gain=score_gain,
                distance=distance,
                interaction_gains=interaction_gains
            ))

        if not options:
            return options
        return prune_similar_options(options, sim_threshold)

    def _categorical_distance(self, feature: CategoricalFeature, bin_index: int) -> float:
        table = self.model.cat_distances.get(feature.name)
        if not table:
            return 1.0
        label = feature.label_of(bin_index)
        for key in (label, str(label), str(int(feature.levels[bin_index]))):
            if key in table:
                return float(table[key])
        return 1.0

    def gen_categorical_options(self, feature: CategoricalFeature) -> List[CategoricalOption]:
        """Enumerates the options of a categorical feature, one per other level."""
        current_bin = self.current_bins[feature.index]
        current_score = self.scoring_model.main_score(feature, current_bin)

        options = []
        for bin_index, level in enumerate(feature.levels):
            if bin_index == current_bin:
                continue
            interaction_gains = self._interaction_gains(feature.index, int(level))
            score_gain = float(feature.scores[bin_index]) - current_score + sum(interaction_gains.values())
            if not self._keep(score_gain):
                continue

            options.append(CategoricalOption(
                feature_index=feature.index,
                bin_index=bin_index,
                target=feature.label_of(bin_index),
                level=int(level),
                score_gain=score_gain,
                distance=self._categorical_distance(feature, bin_index),
                interaction_gains=interaction_gains
            ))
        return options

    def gen_interaction_options(
        self,
        term: InteractionTerm,
        options_by_feature: Mapping[int, Sequence[MainOption]]
    ) -> List[InteractionOption]:
        """
        Enumerates joint options of an interaction term's two features.

        The gain of a pair is the change of the 2-D score minus the parts of
        that change already attributed to each parent option. A parent with
        no recorded gain for this term contributes a zero offset.
        """
        first, second = term.feature_indexes
        current = self.scoring_model.interaction_score(term, self.encoded_sample)

        options = []
        for option1 in options_by_feature.get(first, []):
            for option2 in options_by_feature.get(second, []):
                new_sample = list(self.encoded_sample)
                new_sample[first] = option1.encoded_target
                new_sample[second] = option2.encoded_target
                score_gain = (
                    self.scoring_model.interaction_score(term, new_sample)
                    - current
                    - option1.interaction_gains.get(term.index, 0.0)
                    - option2.interaction_gains.get(term.index, 0.0)
                )
                options.append(InteractionOption(
                    interaction_index=term.index,
                    parents=(option1.variable_id, option2.variable_id),
                    targets=(option1.target, option2.target),
                    score_gain=score_gain
                ))
        return options


def with_distance(option: MainOption, distance: float) -> MainOption:
    """Returns a copy of an option with a new distance."""
    return replace(option, distance=distance)


@dataclass(frozen=True, eq=False)
class OptionSet:
    """All options generated for one sample, keyed by feature and interaction index."""
    main: Mapping[int, Tuple[MainOption, ...]] = field(default_factory=dict)
    interactions: Mapping[int, Tuple[InteractionOption, ...]] = field(default_factory=dict)

    def __post_init__(self):
        lookup = {}
        for options in self.main.values():
            lookup.update({o.variable_id: o for o in options})
        for options in self.interactions.values():
            lookup.update({o.variable_id: o for o in options})
        object.__setattr__(self, '_lookup', lookup)

    def get(self, variable_id: VariableId) -> Union[MainOption, InteractionOption]:
        return self._lookup[variable_id]

    def __contains__(self, variable_id: VariableId) -> bool:
        return variable_id in self._lookup

    def main_options(self) -> List[MainOption]:
        return [o for options in self.main.values() for o in options]

    def interaction_options(self) -> List[InteractionOption]:
        return [o for options in self.interactions.values() for o in options]
