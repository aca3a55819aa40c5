# gamcoach/counterfactual/coach.py
"""
Provides the top-level counterfactual search for additive models.

This module defines the `GAMCoach` class. Given a sample and a desired
outcome, it determines in which direction and by how much the model score
must move, enumerates the options of every changeable feature, and then
repeatedly solves a binary optimization problem. Each solve excludes the
options chosen by earlier solves, so every new counterfactual uses different
feature changes.
"""
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..config import Config
from ..model.description import ModelDescription
from ..model.scoring import ScoringModel
from .builder import OptimizationModelBuilder
from .exceptions import MissingTargetRangeError, TargetAlreadyReachedError
from .options import (
    CategoricalOption,
    ContinuousOption,
    OptionGenerator,
    OptionSet,
    VariableId,
    with_distance
)
from .solver import PulpSolver

logger = logging.getLogger(__name__)

# Log-odds below -2e-5 round to a probability under 0.5.
CLASSIFIER_MARGIN = 1e-4


@dataclass(frozen=True, eq=False)
class SearchState:
    """
    Everything needed to continue a diverse search without regenerating options.

    The state is immutable: muting the variables of a new solution returns a
    new state with a larger `used` set.
    """
    sample: Tuple[Any, ...]
    direction: int
    score_gain_threshold: float
    features_to_vary: FrozenSet[int]
    options: OptionSet
    max_num_features_to_vary: Optional[int] = None
    used: FrozenSet[VariableId] = frozenset()

    def mute(self, variable_ids: Iterable[VariableId]) -> 'SearchState':
        return replace(self, used=self.used | frozenset(variable_ids))

    def builder(self) -> OptimizationModelBuilder:
        return OptimizationModelBuilder(
            direction=self.direction,
            score_gain_threshold=self.score_gain_threshold,
            features_to_vary=self.features_to_vary,
            options=self.options,
            max_num_features_to_vary=self.max_num_features_to_vary
        )


@dataclass
class Solution:
    """Identifiers selected by one solve and the total distance they cost."""
    active_variables: List[VariableId]
    distance: float


@dataclass
class CounterfactualResult:
    """A batch of counterfactuals generated for one sample."""
    feature_names: List[str]
    # One full counterfactual sample per solution.
    data: List[List[Any]] = field(default_factory=list)
    distances: List[float] = field(default_factory=list)
    # Per solution, (feature name, covering bin range or chosen level) of every changed feature.
    target_ranges: List[List[Tuple[str, Any]]] = field(default_factory=list)
    # Per solution, the score gain of every active variable, aligned with active_variables.
    score_gains: List[List[float]] = field(default_factory=list)
    active_variables: List[List[VariableId]] = field(default_factory=list)
    is_successful: bool = True
    # The number of requested counterfactuals that could not be generated.
    num_failed: int = 0
    resume_state: Optional[SearchState] = None

    def __len__(self) -> int:
        return len(self.data)

    def to_frame(self) -> pd.DataFrame:
        """Returns the counterfactual samples as a DataFrame with their distances."""
        df = pd.DataFrame(self.data, columns=self.feature_names)
        df['distance'] = self.distances
        return df

    def to_dict(self) -> Dict[str, Any]:
        """Serializable record of the batch, without the resume state."""
        return {
            'data': self.data,
            'distances': self.distances,
            'targetRanges': [[[name, list(r) if isinstance(r, tuple) else r] for name, r in ranges]
                             for ranges in self.target_ranges],
            'scoreGains': self.score_gains,
            'isSuccessful': self.is_successful,
            'activeVariables': [[v.name for v in variables] for variables in self.active_variables]
        }


class GAMCoach:
    """
    Generates diverse counterfactual explanations for an additive model.

    Solving is delegated to a solver object exposing `solve(problem)`; by
    default a PulpSolver configured from `config.solver` is used.
    """

    def __init__(
        self,
        model: Union[ScoringModel, ModelDescription, Dict[str, Any]],
        solver=None,
        config: Optional[Config] = None
    ):
        """
        Initializes the coach.

        Args:
            model: A ScoringModel, a decoded ModelDescription or the raw JSON record.
            solver: An object with a `solve(problem) -> SolverResult` method.
            config: The configuration providing search and constraint defaults.
        """
        self.config = config or Config()
        self.scoring_model = model if isinstance(model, ScoringModel) else ScoringModel(model)
        self.model = self.scoring_model.model
        self.solver = solver or PulpSolver(self.config.solver)

    def _resolve_sample(self, cur_example) -> List[Any]:
        samples = self.scoring_model.as_sample_list(cur_example)
        if len(samples) != 1:
            raise ValueError(f"Counterfactuals are generated for one sample at a time, got {len(samples)}.")
        return list(samples[0])

    def get_target(self, score: float, target_range: Optional[Sequence[float]] = None) -> Tuple[int, float, Optional[float]]:
        """
        Determines the search direction and the required score gain.

        Classifiers must flip the predicted label. Log-odds of 0 predict
        class 1, so a sample at 0 must decrease, and a decreasing target
        stops CLASSIFIER_MARGIN below 0 to stay under the 0.5 cut after
        the probability is rounded. Regressors move toward the nearer bound of the target
        range; the opposite bound limits the gain of any single option.

        Args:
            score: The current raw score of the sample.
            target_range: The desired [low, high] score range (regression only).
                          None bounds are read as unbounded.

        Returns:
            A tuple (direction, score_gain_threshold, score_gain_bound).

        Raises:
            MissingTargetRangeError: If the model is a regressor and no target range is given.
            TargetAlreadyReachedError: If the score already lies inside the target range.
        """
        if self.model.is_classifier:
            if score >= 0:
                return -1, -score - CLASSIFIER_MARGIN, None
            return 1, -score, None

        if target_range is None:
            raise MissingTargetRangeError("A target range is required to explain a regression model.")

        low = -math.inf if target_range[0] is None else float(target_range[0])
        high = math.inf if target_range[1] is None else float(target_range[1])
        if low <= score <= high:
            raise TargetAlreadyReachedError(score, (low, high))

        if score < low:
            bound = high - score if math.isfinite(high) else None
            return 1, low - score, bound
        bound = low - score if math.isfinite(low) else None
        return -1, high - score, bound

    def default_sim_threshold(self, sim_threshold_factor: float) -> float:
        """Mean additive score range of the continuous features, scaled by a factor."""
        ranges = [np.max(f.scores) - np.min(f.scores) for f in self.model.continuous_features]
        if not ranges:
            return 0.0
        return float(np.mean(ranges)) * sim_threshold_factor

    def _feature_indexes(self, features_to_vary: Optional[Iterable[str]]) -> FrozenSet[int]:
        if features_to_vary is None:
            return frozenset(f.index for f in self.model.features)
        names = set(features_to_vary)
        unknown = names - set(self.model.feature_names)
        if unknown:
            raise ValueError(f"Unknown features to vary: {sorted(unknown)}")
        return frozenset(f.index for f in self.model.features if f.name in names)

    @staticmethod
    def _in_range(option, allowed: Sequence[Any]) -> bool:
        if isinstance(option, ContinuousOption):
            low, high = allowed
            low = -math.inf if low is None else low
            high = math.inf if high is None else high
            return low <= option.target <= high
        allowed_keys = {str(a) for a in allowed}
        return str(option.target) in allowed_keys or str(option.level) in allowed_keys

    def generate_options(
        self,
        sample: Sequence[Any],
        direction: int,
        features_to_vary: FrozenSet[int],
        sim_threshold: float,
        score_gain_bound: Optional[float] = None,
        feature_ranges: Optional[Dict[str, Sequence[Any]]] = None,
        continuous_integer_features: Iterable[str] = (),
        feature_weight_multipliers: Optional[Dict[str, float]] = None,
        categorical_weight: Union[str, float] = 'auto',
        epsilon: float = 1e-4
    ) -> OptionSet:
        """
        Generates the final option set of a sample.

        Main-effect options are filtered by the allowed feature ranges before
        the interaction options are derived from them. Categorical distances
        are then rescaled and the per-feature multipliers applied.
        """
        feature_ranges = feature_ranges or {}
        feature_weight_multipliers = feature_weight_multipliers or {}
        generator = OptionGenerator(
            self.scoring_model,
            sample,
            direction,
            epsilon=epsilon,
            continuous_integer_features=continuous_integer_features,
            score_gain_bound=score_gain_bound
        )

        main = {}
        for feature in self.model.features:
            if feature.index not in features_to_vary:
                continue
            if feature.is_continuous:
                options = generator.gen_continuous_options(feature, sim_threshold)
            else:
                options = generator.gen_categorical_options(feature)
            allowed = feature_ranges.get(feature.name)
            if allowed is not None:
                options = [o for o in options if self._in_range(o, allowed)]
            main[feature.index] = options

        interactions = {}
        for term in self.model.interactions:
            options = generator.gen_interaction_options(term, main)
            if options:
                interactions[term.index] = tuple(options)

        if categorical_weight == 'auto':
            cont_distances = [o.distance for opts in main.values() for o in opts if isinstance(o, ContinuousOption)]
            cat_distances = [o.distance for opts in main.values() for o in opts if isinstance(o, CategoricalOption)]
            cat_factor = 1.0
            if cont_distances and cat_distances and np.mean(cat_distances) > 0:
                cat_factor = float(np.mean(cont_distances) / np.mean(cat_distances))
        else:
            cat_factor = float(categorical_weight)

        multipliers = {}
        for name, multiplier in feature_weight_multipliers.items():
            if name not in self.model.feature_names:
                logger.warning(f"Ignoring weight multiplier of unknown feature '{name}'")
                continue
            multipliers[self.model.feature(name).index] = multiplier

        for feature_index, options in main.items():
            factor = multipliers.get(feature_index, 1.0)
            if not self.model.features[feature_index].is_continuous:
                factor *= cat_factor
            if factor != 1.0:
                options = [with_distance(o, o.distance * factor) for o in options]
            main[feature_index] = tuple(options)

        return OptionSet(main=main, interactions=interactions)

    def iter_solutions(self, state: SearchState) -> Iterator[Tuple[Optional[Solution], SearchState]]:
        """
        Lazily yields diverse solutions.

        Each step builds a problem that excludes every identifier used so far,
        solves it and yields the solution with the state muting its
        identifiers. A failed solve yields (None, state) and ends the sequence.
        """
        while True:
            built = state.builder().build(state.used)
            result = self.solver.solve(built.problem)
            if not result.is_optimal:
                yield None, state
                return
            active = built.decode(result.variable_assignment)
            if not active:
                logger.warning("Solver returned an empty selection; the target needs no change.")
                yield None, state
                return
            state = state.mute(active)
            yield Solution(active, float(result.objective_value or 0.0)), state

    def decode_solution(self, state: SearchState, solution: Solution) -> Tuple[List[Any], List[Tuple[str, Any]], List[float]]:
        """
        Turns selected identifiers into a full counterfactual sample.

        Only main-effect selections change values; interaction selections
        only contribute their score gain.

        Returns:
            The counterfactual sample, the covering range or level of every
            changed feature, and the score gain of every active variable.
        """
        cf_sample = list(state.sample)
        target_ranges = []
        score_gains = []
        for variable_id in solution.active_variables:
            option = state.options.get(variable_id)
            score_gains.append(option.score_gain)
            if variable_id.is_interaction:
                continue
            feature = self.model.features[variable_id.feature_index]
            cf_sample[feature.index] = option.target
            if feature.is_continuous:
                target_ranges.append((feature.name, feature.bin_range(variable_id.bin_index)))
            else:
                target_ranges.append((feature.name, option.target))
        return cf_sample, target_ranges, score_gains

    def _run(self, state: SearchState, total_cfs: int, verbose: int = 0) -> CounterfactualResult:
        result = CounterfactualResult(feature_names=self.model.feature_names)
        steps = self.iter_solutions(state)

        progress = tqdm(total=total_cfs, desc="Generating counterfactuals", disable=not verbose)
        for _ in range(total_cfs):
            solution, state = next(steps)
            if solution is None:
                result.num_failed = total_cfs - len(result.data)
                result.is_successful = False
                logger.info(
                    f"No more counterfactuals under the current constraints "
                    f"({result.num_failed} of {total_cfs} failed)."
                )
                break

            cf_sample, target_ranges, score_gains = self.decode_solution(state, solution)
            result.data.append(cf_sample)
            result.distances.append(solution.distance)
            result.target_ranges.append(target_ranges)
            result.score_gains.append(score_gains)
            result.active_variables.append(solution.active_variables)
            if verbose:
                logger.info(f"Counterfactual {len(result.data)}: distance {solution.distance:.4f}, "
                            f"changes {target_ranges}")
            progress.update(1)
        progress.close()

        result.resume_state = state
        return result

    def generate_cfs(
        self,
        cur_example,
        total_cfs: Optional[int] = None,
        target_range: Optional[Sequence[float]] = None,
        sim_threshold: Optional[float] = None,
        sim_threshold_factor: Optional[float] = None,
        epsilon: Optional[float] = None,
        categorical_weight: Optional[Union[str, float]] = None,
        features_to_vary: Optional[Sequence[str]] = None,
        feature_ranges: Optional[Dict[str, Sequence[Any]]] = None,
        feature_weight_multipliers: Optional[Dict[str, float]] = None,
        max_num_features_to_vary: Optional[int] = None,
        continuous_integer_features: Optional[Sequence[str]] = None,
        verbose: Optional[int] = None
    ) -> CounterfactualResult:
        """
        Generates a batch of diverse counterfactuals for one sample.

        Arguments left as None fall back to `config.search` and
        `config.constraints`.

        Args:
            cur_example: The sample to explain (a list, a one-sample batch or a DataFrame row).
            total_cfs: The number of counterfactuals to generate.
            target_range: The desired [low, high] score range (regression only).
            sim_threshold: Gain difference under which continuous options are redundant.
            sim_threshold_factor: Scale of the default sim_threshold.
            epsilon: Offset below a bin's upper edge for left-side targets.
            categorical_weight: 'auto' or a fixed scale of categorical distances.
            features_to_vary: Names of the features allowed to change.
            feature_ranges: Allowed range (continuous) or levels (categorical) per feature.
            feature_weight_multipliers: Distance multiplier per feature.
            max_num_features_to_vary: Cap on the number of changed features.
            continuous_integer_features: Continuous features requiring integer values.
            verbose: If greater than 0, shows progress.

        Returns:
            A CounterfactualResult whose `resume_state` continues the search.
        """
        search = self.config.search
        constraints = self.config.constraints
        total_cfs = search.total_cfs if total_cfs is None else total_cfs
        target_range = constraints.target_range if target_range is None else target_range
        sim_threshold = search.sim_threshold if sim_threshold is None else sim_threshold
        sim_threshold_factor = search.sim_threshold_factor if sim_threshold_factor is None else sim_threshold_factor
        epsilon = search.epsilon if epsilon is None else epsilon
        categorical_weight = search.categorical_weight if categorical_weight is None else categorical_weight
        features_to_vary = constraints.features_to_vary if features_to_vary is None else features_to_vary
        feature_ranges = constraints.feature_ranges if feature_ranges is None else feature_ranges
        if feature_weight_multipliers is None:
            feature_weight_multipliers = constraints.feature_weight_multipliers
        if max_num_features_to_vary is None:
            max_num_features_to_vary = constraints.max_num_features_to_vary
        if continuous_integer_features is None:
            continuous_integer_features = constraints.continuous_integer_features
        verbose = search.verbose if verbose is None else verbose

        sample = self._resolve_sample(cur_example)
        score = float(self.scoring_model.score([sample])[0])
        direction, threshold, score_gain_bound = self.get_target(score, target_range)

        if sim_threshold is None:
            sim_threshold = self.default_sim_threshold(sim_threshold_factor)

        feature_indexes = self._feature_indexes(features_to_vary)
        options = self.generate_options(
            sample,
            direction,
            feature_indexes,
            sim_threshold,
            score_gain_bound=score_gain_bound,
            feature_ranges=feature_ranges,
            continuous_integer_features=continuous_integer_features,
            feature_weight_multipliers=feature_weight_multipliers,
            categorical_weight=categorical_weight,
            epsilon=epsilon
        )
        if verbose:
            logger.info(
                f"Score {score:.4f}, direction {direction:+d}, required gain {threshold:.4f}, "
                f"{len(options.main_options())} main and {len(options.interaction_options())} interaction options"
            )

        state = SearchState(
            sample=tuple(sample),
            direction=direction,
            score_gain_threshold=threshold,
            features_to_vary=feature_indexes,
            options=options,
            max_num_features_to_vary=max_num_features_to_vary
        )
        return self._run(state, total_cfs, verbose)

    def generate_sub_cfs(self, resume_state: SearchState, total_cfs: int = 1, verbose: int = 0) -> CounterfactualResult:
        """
        Continues a diverse search from the state returned by a previous batch.

        Args:
            resume_state: The `resume_state` of an earlier CounterfactualResult.
            total_cfs: The number of additional counterfactuals.
            verbose: If greater than 0, shows progress.

        Returns:
            A CounterfactualResult with the new solutions.
        """
        return self._run(resume_state, total_cfs, verbose)
