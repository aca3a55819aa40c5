# gamcoach/config.py
"""
Defines the configuration structure for the counterfactual coach.

This module utilizes Python's dataclasses to create a hierarchical and type-safe
configuration system. It consolidates all tunable parameters, from option
generation and diversification settings to solver options and user constraints,
into a single structure. The configuration can be loaded from and saved to
YAML files, which keeps counterfactual runs reproducible.
"""
from dataclasses import dataclass, field, is_dataclass, fields
from typing import Optional, Dict, Any, List, Union
import yaml
from pathlib import Path

# Distance multipliers applied to features according to their difficulty.
DIFFICULTY_MULTIPLIERS = {
    'very-easy': 0.1,
    'easy': 0.5,
    'neutral': 1,
    'hard': 2,
    'very-hard': 10
}

# Maps the integer difficulty stored in a model description to its name.
DIFFICULTY_LEVELS = {
    1: 'very-easy',
    2: 'easy',
    3: 'neutral',
    4: 'hard',
    5: 'very-hard',
    6: 'lock'
}


@dataclass
class SearchConfig:
    """Specifies how options are enumerated and how diverse solutions are searched."""
    # The fraction of the mean additive score range used as the similarity threshold
    # when pruning redundant continuous options.
    sim_threshold_factor: float = 0.005
    # An explicit similarity threshold. If None, it is derived from sim_threshold_factor.
    sim_threshold: Optional[float] = None
    # The offset subtracted from a bin's upper edge to stay inside that bin.
    epsilon: float = 1e-4
    # Either 'auto' to rescale categorical distances to the continuous ones, or a fixed factor.
    categorical_weight: Union[str, float] = 'auto'
    # The number of counterfactuals generated by a single call.
    total_cfs: int = 1
    # If greater than 0, shows a progress bar and logs each solution.
    verbose: int = 0

    def __post_init__(self):
        """Validate search parameters after initialization."""
        if self.sim_threshold_factor < 0:
            raise ValueError("sim_threshold_factor must be non-negative.")
        if self.epsilon <= 0:
            raise ValueError("epsilon must be positive.")
        if self.total_cfs < 1:
            raise ValueError("total_cfs must be at least 1.")
        if isinstance(self.categorical_weight, str) and self.categorical_weight != 'auto':
            raise ValueError("categorical_weight must be 'auto' or a number.")


@dataclass
class ConstraintConfig:
    """Specifies which features may change, and how."""
    # Names of the features allowed to vary. If None, every feature may vary.
    features_to_vary: Optional[List[str]] = None
    # Allowed [min, max] range for continuous features, or allowed levels for categorical ones.
    feature_ranges: Dict[str, List[Any]] = field(default_factory=dict)
    # Per-feature distance multipliers; larger values make a feature harder to change.
    feature_weight_multipliers: Dict[str, float] = field(default_factory=dict)
    # The maximum number of features that may change at the same time.
    max_num_features_to_vary: Optional[int] = None
    # Continuous features whose counterfactual values must be integers.
    continuous_integer_features: List[str] = field(default_factory=list)
    # The desired [low, high] score range for regression models.
    target_range: Optional[List[float]] = None

    def __post_init__(self):
        """Validate constraint parameters after initialization."""
        if self.max_num_features_to_vary is not None and self.max_num_features_to_vary < 1:
            raise ValueError("max_num_features_to_vary must be at least 1 when set.")
        for name, multiplier in self.feature_weight_multipliers.items():
            if multiplier <= 0:
                raise ValueError(f"Weight multiplier for '{name}' must be positive.")
        if self.target_range is not None and len(self.target_range) != 2:
            raise ValueError("target_range must be a [low, high] pair.")


@dataclass
class SolverConfig:
    """Configures the MIP solver backend."""
    # The PuLP backend to use ('cbc' or 'glpk').
    backend: str = 'cbc'
    # If True, the solver prints its own log.
    msg: bool = False
    # The time limit of a single solve in seconds. If None, no limit is enforced.
    time_limit: Optional[float] = None
    # The number of solver threads. If None, the backend default is used.
    threads: Optional[int] = None

    def validate(self):
        """Validate the solver configuration."""
        valid_backends = ['cbc', 'glpk']
        if self.backend not in valid_backends:
            raise ValueError(f"backend must be one of {valid_backends}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError("time_limit must be positive when set.")


@dataclass
class PlanConfig:
    """Configures the progressive generation of alternative plans."""
    # The number of plans generated for one sample.
    total_plans: int = 5
    # If True, a plan changing a single feature already used by another single-feature plan is skipped.
    skip_repeated_single_feature: bool = True
    # Used as the default maximum number of changed features when no constraint sets one.
    default_max_num_features_to_vary: Optional[int] = 4

    def __post_init__(self):
        """Validate plan parameters after initialization."""
        if self.total_plans < 1:
            raise ValueError("total_plans must be at least 1.")
        if self.default_max_num_features_to_vary is not None and self.default_max_num_features_to_vary < 1:
            raise ValueError("default_max_num_features_to_vary must be at least 1 when set.")


@dataclass
class Config:
    """The main configuration class that aggregates all other configurations."""
    search: SearchConfig = field(default_factory=SearchConfig)
    constraints: ConstraintConfig = field(default_factory=ConstraintConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    plans: PlanConfig = field(default_factory=PlanConfig)
    # Path to the JSON model description.
    model_path: str = 'data/model.json'
    # The base directory where generated plans are saved.
    results_dir: str = 'results'

    @classmethod
    def from_yaml(cls, path: str) -> 'Config':
        """
        Loads the configuration from a YAML file.

        If a parameter is missing in the file, it falls back to the default
        value defined in the corresponding dataclass.

        Args:
            path (str): The file path to the YAML configuration file.

        Returns:
            A populated Config object.
        """
        with open(path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}

        def _create_with_defaults(dc_type: Any, cfg_dict: Optional[Dict]) -> Any:
            if cfg_dict is None:
                return dc_type()

            default_instance = dc_type()
            final_args = {}
            for field_info in fields(dc_type):
                if field_info.name in cfg_dict:
                    value = cfg_dict[field_info.name]
                    field_type_hint = field_info.type
                    actual_field_type = field_type_hint

                    if getattr(field_type_hint, '__origin__', None) is Union:
                        non_none_types = [t for t in field_type_hint.__args__ if t is not type(None)]
                        if non_none_types:
                            actual_field_type = non_none_types[0]

                    if is_dataclass(actual_field_type) and isinstance(value, dict):
                        final_args[field_info.name] = _create_with_defaults(actual_field_type, value)
                    else:
                        final_args[field_info.name] = value
                else:
                    final_args[field_info.name] = getattr(default_instance, field_info.name)

            return dc_type(**final_args)

        solver_config = _create_with_defaults(SolverConfig, yaml_config.get('solver'))
        solver_config.validate()

        return cls(
            search=_create_with_defaults(SearchConfig, yaml_config.get('search')),
            constraints=_create_with_defaults(ConstraintConfig, yaml_config.get('constraints')),
            solver=solver_config,
            plans=_create_with_defaults(PlanConfig, yaml_config.get('plans')),
            model_path=yaml_config.get('model_path', 'data/model.json'),
            results_dir=yaml_config.get('results_dir', 'results')
        )

    def to_yaml(self, path: str):
        """
        Saves the current configuration object to a YAML file.

        Args:
            path (str): The destination file path for the YAML output.
        """
        def as_dict_recursive(data_obj: Any) -> Any:
            if is_dataclass(data_obj):
                return {f.name: as_dict_recursive(getattr(data_obj, f.name)) for f in fields(data_obj)}
            elif isinstance(data_obj, (list, tuple)):
                return [as_dict_recursive(i) for i in data_obj]
            elif isinstance(data_obj, dict):
                return {k: as_dict_recursive(v) for k, v in data_obj.items()}
            else:
                return data_obj

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(as_dict_recursive(self), f, default_flow_style=False, sort_keys=False)
