# gamcoach/counterfactual/builder.py
"""
Builds the binary optimization problem behind a counterfactual search.

Every main-effect option becomes a binary variable x. Every interaction
option whose two parents are available becomes an auxiliary variable z in
[0, 1] tied to the logical AND of its parents by three linear inequalities.
The problem minimizes the total distance of the selected options subject to
the score gain reaching the required threshold.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .options import OptionSet, VariableId


@dataclass
class OptimizationProblem:
    """Solver-agnostic problem record."""
    # {'direction': 'minimize', 'vars': [{'name': ..., 'coef': ...}]}
    objective: Dict[str, Any]
    # [{'name': ..., 'vars': [...], 'bounds': {'type': 'upper' | 'lower', 'lb'/'ub': ...}}]
    subject_to: List[Dict[str, Any]] = field(default_factory=list)
    binaries: List[str] = field(default_factory=list)
    # [{'name': ..., 'lb': ..., 'ub': ...}] for the continuous auxiliaries.
    bounds: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'objective': self.objective,
            'subjectTo': self.subject_to,
            'binaries': self.binaries,
            'bounds': self.bounds
        }


@dataclass
class BuiltModel:
    """An assembled problem and the identifiers of the variables it contains."""
    problem: OptimizationProblem
    variables: Dict[VariableId, str]

    def decode(self, assignment: Dict[str, float]) -> List[VariableId]:
        """Returns the identifiers whose variables are set to 1, main effects first."""
        active = [vid for vid, name in self.variables.items() if assignment.get(name, 0) >= 0.5]
        return sorted(active, key=lambda v: (v.is_interaction, v.feature_index, v.bin_index,
                                             v.other_feature_index or 0, v.other_bin_index or 0))


def _term(name: str, coef: float) -> Dict[str, Any]:
    return {'name': name, 'coef': coef}


class OptimizationModelBuilder:
    """Turns an option set and user constraints into an OptimizationProblem."""

    def __init__(
        self,
        direction: int,
        score_gain_threshold: float,
        features_to_vary: Iterable[int],
        options: OptionSet,
        max_num_features_to_vary: Optional[int] = None
    ):
        """
        Args:
            direction: +1 if the total score gain must be at least the
                       threshold, -1 if it must be at most the threshold.
            score_gain_threshold: The required score gain.
            features_to_vary: Indexes of the features allowed to change.
            options: The option set of the sample.
            max_num_features_to_vary: Optional cap on the number of changed features.
        """
        self.direction = direction
        self.score_gain_threshold = score_gain_threshold
        self.features_to_vary = frozenset(features_to_vary)
        self.options = options
        self.max_num_features_to_vary = max_num_features_to_vary

    def build(self, muted: FrozenSet[VariableId] = frozenset()) -> BuiltModel:
        """
        Assembles the problem, leaving out every muted variable.

        Args:
            muted: Identifiers excluded from this problem.

        Returns:
            The problem and the mapping from identifiers to variable names.
        """
        variables: Dict[VariableId, str] = {}
        objective_vars = []
        gain_vars = []
        constraints = []
        binaries = []
        bounds = []
        main_names = []

        for feature_index in sorted(self.options.main):
            if feature_index not in self.features_to_vary:
                continue
            names = []
            for option in self.options.main[feature_index]:
                variable_id = option.variable_id
                if variable_id in muted:
                    continue
                name = variable_id.name
                variables[variable_id] = name
                binaries.append(name)
                objective_vars.append(_term(name, option.distance))
                gain_vars.append(_term(name, option.score_gain))
                names.append(name)

            if names:
                constraints.append({
                    'name': f'single_option_{feature_index}',
                    'vars': [_term(n, 1) for n in names],
                    'bounds': {'type': 'upper', 'ub': 1}
                })
                main_names.extend(names)

        if self.max_num_features_to_vary is not None and main_names:
            constraints.append({
                'name': 'max_num_features',
                'vars': [_term(n, 1) for n in main_names],
                'bounds': {'type': 'upper', 'ub': self.max_num_features_to_vary}
            })

        for interaction_index in sorted(self.options.interactions):
            for option in self.options.interactions[interaction_index]:
                variable_id = option.variable_id
                parent1, parent2 = option.parents
                if variable_id in muted or parent1 not in variables or parent2 not in variables:
                    continue
                name = variable_id.name
                x1, x2 = variables[parent1], variables[parent2]
                variables[variable_id] = name
                bounds.append({'name': name, 'lb': 0, 'ub': 1})
                gain_vars.append(_term(name, option.score_gain))

                # z = x1 AND x2
                constraints.append({
                    'name': f'{name}_le_first',
                    'vars': [_term(name, 1), _term(x1, -1)],
                    'bounds': {'type': 'upper', 'ub': 0}
                })
                constraints.append({
                    'name': f'{name}_le_second',
                    'vars': [_term(name, 1), _term(x2, -1)],
                    'bounds': {'type': 'upper', 'ub': 0}
                })
                constraints.append({
                    'name': f'{name}_ge_both',
                    'vars': [_term(x1, 1), _term(x2, 1), _term(name, -1)],
                    'bounds': {'type': 'upper', 'ub': 1}
                })

        if self.direction > 0:
            gain_bounds = {'type': 'lower', 'lb': self.score_gain_threshold}
        else:
            gain_bounds = {'type': 'upper', 'ub': self.score_gain_threshold}
        constraints.append({'name': 'score_gain', 'vars': gain_vars, 'bounds': gain_bounds})

        problem = OptimizationProblem(
            objective={'direction': 'minimize', 'vars': objective_vars},
            subject_to=constraints,
            binaries=binaries,
            bounds=bounds
        )
        return BuiltModel(problem=problem, variables=variables)
