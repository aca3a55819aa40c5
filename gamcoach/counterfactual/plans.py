# gamcoach/counterfactual/plans.py
"""
Progressive generation of alternative plans for one sample.

Instead of asking for all plans in a single batch, the first plan is
generated on its own and the next ones are obtained by resuming the diverse
search one solution at a time. A plan that only changes a feature already
used by an earlier single-feature plan is skipped, so single-feature plans
always point to different features.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from ..config import PlanConfig
from ..model.local import LocalScoringModel
from .coach import CounterfactualResult, GAMCoach
from .constraints import Constraints
from .options import VariableId

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """One counterfactual proposal and a scoring model bound to it."""
    index: int
    original_sample: List[Any]
    original_score: float
    coach_sample: List[Any]
    local_model: LocalScoringModel
    active_variables: List[VariableId]
    score_gains: List[float]
    target_ranges: list
    distance: float

    @property
    def changed_features(self) -> List[str]:
        names = self.local_model.scoring_model.feature_names
        return [n for n, a, b in zip(names, self.original_sample, self.coach_sample) if a != b]

    @property
    def is_changed_by_user(self) -> bool:
        """True if the bound sample differs from the sample proposed by the coach."""
        return self.local_model.sample != self.coach_sample

    def to_dict(self) -> Dict[str, Any]:
        return {
            'planIndex': self.index,
            'originalScore': self.original_score,
            'coachSample': list(self.coach_sample),
            'curExample': list(self.original_sample),
            'changedFeatures': self.changed_features,
            'scoreGains': list(self.score_gains),
            'targetRanges': [[name, list(r) if isinstance(r, tuple) else r] for name, r in self.target_ranges],
            'distance': self.distance,
            'prediction': {
                'pred': self.local_model.pred,
                'predScore': self.local_model.pred_score,
                'predProb': self.local_model.pred_prob
            }
        }


@dataclass
class PlanBatch:
    """Plans generated for one sample and the indexes of the slots that failed."""
    plans: List[Plan] = field(default_factory=list)
    failed_plan_indexes: Set[int] = field(default_factory=set)

    @property
    def is_successful(self) -> bool:
        return not self.failed_plan_indexes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'plans': [p.to_dict() for p in self.plans],
            'failedPlans': sorted(self.failed_plan_indexes)
        }


class PlanGenerator:
    """Generates up to `total_plans` diverse plans for a sample."""

    def __init__(self, coach: GAMCoach, config: Optional[PlanConfig] = None):
        self.coach = coach
        self.config = config or PlanConfig()

    def _single_feature(self, result: CounterfactualResult) -> Optional[int]:
        main_ids = [v for v in result.active_variables[0] if not v.is_interaction]
        if len(main_ids) == 1:
            return main_ids[0].feature_index
        return None

    def _make_plan(self, index: int, sample: List[Any], score: float, result: CounterfactualResult) -> Plan:
        cf_sample = list(result.data[0])
        return Plan(
            index=index,
            original_sample=list(sample),
            original_score=score,
            coach_sample=cf_sample,
            local_model=LocalScoringModel(self.coach.scoring_model, cf_sample),
            active_variables=result.active_variables[0],
            score_gains=result.score_gains[0],
            target_ranges=result.target_ranges[0],
            distance=result.distances[0]
        )

    def generate(
        self,
        sample: Sequence[Any],
        constraints: Optional[Constraints] = None,
        target_range: Optional[Sequence[float]] = None,
        start_index: int = 1
    ) -> PlanBatch:
        """
        Generates plans for a sample.

        Args:
            sample: The sample to explain.
            constraints: User constraints. If None, the coach's configured constraints apply.
            target_range: The desired [low, high] score range (regression only).
            start_index: Index given to the first plan.

        Returns:
            A PlanBatch. When the search fails, every remaining plan slot is marked failed.
        """
        total_plans = self.config.total_plans
        sample = list(sample)
        score = float(self.coach.scoring_model.score([sample])[0])

        kwargs = {'total_cfs': 1, 'target_range': target_range}
        if constraints is not None:
            constraint_config = constraints.to_constraint_config(target_range)
            kwargs.update(
                features_to_vary=constraint_config.features_to_vary,
                feature_ranges=constraint_config.feature_ranges,
                feature_weight_multipliers=constraint_config.feature_weight_multipliers,
                max_num_features_to_vary=constraint_config.max_num_features_to_vary,
                continuous_integer_features=constraint_config.continuous_integer_features
            )
        elif self.coach.config.constraints.max_num_features_to_vary is None:
            kwargs['max_num_features_to_vary'] = self.config.default_max_num_features_to_vary

        batch = PlanBatch()
        single_features = set()
        result = self.coach.generate_cfs(sample, **kwargs)

        while True:
            next_index = start_index + len(batch.plans)
            if not result.is_successful:
                batch.failed_plan_indexes.update(range(next_index, start_index + total_plans))
                logger.info(
                    "There is no strategy to change the decision under the current "
                    "configuration. Relax some constraints and try again."
                )
                break

            feature_index = self._single_feature(result)
            if (self.config.skip_repeated_single_feature and feature_index is not None
                    and feature_index in single_features):
                logger.debug(f"Skipping a repeated single-feature plan on feature {feature_index}")
            else:
                if feature_index is not None:
                    single_features.add(feature_index)
                batch.plans.append(self._make_plan(next_index, sample, score, result))

            if len(batch.plans) >= total_plans:
                break
            result = self.coach.generate_sub_cfs(result.resume_state)

        return batch
