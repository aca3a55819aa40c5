# gamcoach/model/description.py
"""
Typed representation of a trained additive model description.

A model description is the JSON record exported after training an Explainable
Boosting Machine. It lists every main-effect feature and every pairwise
interaction term with their bins and additive scores, plus the intercept,
the label encoders for categorical features and optional distance tables
used to normalize counterfactual distances.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np


@dataclass
class FeatureConfig:
    """User-facing constraints stored with each feature in the model description."""
    # Allowed [min, max] range (continuous) or list of allowed levels (categorical).
    acceptable_range: Optional[List[Any]] = None
    # If True, the feature may only increase.
    requires_increasing: bool = False
    # If True, the feature may only decrease.
    requires_decreasing: bool = False
    # Difficulty level, from 1 (very easy) to 6 (locked).
    difficulty: int = 3
    # Name of the transform applied to the feature for display, if any.
    uses_transform: Optional[str] = None
    # If True, the feature only takes integer values.
    requires_int: bool = False

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> 'FeatureConfig':
        if not config:
            return cls()
        return cls(
            acceptable_range=config.get('acceptableRange'),
            requires_increasing=bool(config.get('requiresIncreasing', False)),
            requires_decreasing=bool(config.get('requiresDecreasing', False)),
            difficulty=int(config.get('difficulty', 3)),
            uses_transform=config.get('usesTransform'),
            requires_int=bool(config.get('requiresInt', False))
        )


@dataclass
class ContinuousFeature:
    """A main-effect feature whose bins are contiguous value ranges."""
    index: int
    name: str
    # Lower edge of every bin, ascending.
    bin_edges: np.ndarray
    # Upper edge of the last bin as exported by the model.
    upper_edge: float
    scores: np.ndarray
    config: FeatureConfig = field(default_factory=FeatureConfig)

    is_continuous = True

    @property
    def num_bins(self) -> int:
        return len(self.scores)

    def bin_of(self, value: float) -> int:
        """Lower-bound bin index of a value, clamped to the first and last bins."""
        position = int(np.searchsorted(self.bin_edges, value, side='right')) - 1
        return min(max(position, 0), self.num_bins - 1)

    def bin_range(self, bin_index: int) -> Tuple[float, float]:
        """Returns the [lower, upper) range covered by a bin."""
        upper = self.bin_edges[bin_index + 1] if bin_index + 1 < self.num_bins else self.upper_edge
        return float(self.bin_edges[bin_index]), float(upper)


@dataclass
class CategoricalFeature:
    """A main-effect feature whose bins are discrete levels."""
    index: int
    name: str
    # Numeric level code of every bin.
    levels: np.ndarray
    scores: np.ndarray
    # Maps level code to the label seen in samples.
    labels: Dict[int, Any] = field(default_factory=dict)
    config: FeatureConfig = field(default_factory=FeatureConfig)

    is_continuous = False

    def __post_init__(self):
        self._level_positions = {int(level): i for i, level in enumerate(self.levels)}

    @property
    def num_bins(self) -> int:
        return len(self.scores)

    def bin_of(self, code: int) -> Optional[int]:
        """Exact-match bin index of a level code, or None for an unknown level."""
        return self._level_positions.get(int(code))

    def label_of(self, bin_index: int) -> Any:
        level = int(self.levels[bin_index])
        return self.labels.get(level, level)


@dataclass
class InteractionTerm:
    """A pairwise interaction with a 2-D grid of additive scores."""
    index: int
    name: str
    # Sample positions of the two interacting features.
    feature_indexes: Tuple[int, int]
    # Bin edges (continuous axis) or level codes (categorical axis) of both axes.
    axes: Tuple[np.ndarray, np.ndarray]
    continuous_axes: Tuple[bool, bool]
    scores: np.ndarray

    def bin_of(self, axis: int, encoded_value: float) -> Optional[int]:
        """Bin index of an encoded value along one axis of the grid."""
        edges = self.axes[axis]
        if self.continuous_axes[axis]:
            position = int(np.searchsorted(edges, encoded_value, side='right')) - 1
            return min(max(position, 0), len(edges) - 1)
        matches = np.flatnonzero(edges == encoded_value)
        return int(matches[0]) if len(matches) else None

    def score_at(self, bin1: Optional[int], bin2: Optional[int]) -> float:
        if bin1 is None or bin2 is None:
            return 0.0
        return float(self.scores[bin1, bin2])

    def other_axis(self, feature_index: int) -> int:
        """Returns the axis that does not belong to the given feature."""
        return 1 if self.feature_indexes[0] == feature_index else 0


MainFeature = Union[ContinuousFeature, CategoricalFeature]


@dataclass
class ModelDescription:
    """Decoded model description with typed features and interaction terms."""
    features: List[MainFeature]
    interactions: List[InteractionTerm]
    intercept: float
    is_classifier: bool
    model_info: Dict[str, Any] = field(default_factory=dict)
    # Median absolute deviation of every continuous feature.
    cont_mads: Dict[str, float] = field(default_factory=dict)
    # Distance of moving to each level, per categorical feature.
    cat_distances: Dict[str, Dict[str, float]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def feature_names(self) -> List[str]:
        return [f.name for f in self.features]

    @property
    def continuous_features(self) -> List[ContinuousFeature]:
        return [f for f in self.features if f.is_continuous]

    @property
    def categorical_features(self) -> List[CategoricalFeature]:
        return [f for f in self.features if not f.is_continuous]

    def feature(self, name: str) -> MainFeature:
        for feature in self.features:
            if feature.name == name:
                return feature
        raise KeyError(f"Unknown feature '{name}'")

    def interactions_of(self, feature_index: int) -> List[InteractionTerm]:
        """Returns the interaction terms that reference the given feature."""
        return [t for t in self.interactions if feature_index in t.feature_indexes]

    @classmethod
    def from_dict(cls, model: Dict[str, Any]) -> 'ModelDescription':
        """
        Decodes the raw JSON record of a trained model.

        Continuous features drop the trailing upper edge of `binEdge` so that
        edges and scores are parallel arrays. Categorical features use their
        level codes as edges. Interaction terms reference their two features
        through `id`, which holds sample positions.

        Args:
            model: The parsed model description.

        Returns:
            A ModelDescription instance.
        """
        label_encoder = model.get('labelEncoder', {})
        features: List[MainFeature] = []
        raw_interactions = []

        for entry in model['features']:
            kind = entry['type']
            if kind == 'interaction':
                raw_interactions.append(entry)
                continue

            index = len(features)
            config = FeatureConfig.from_dict(entry.get('config'))
            scores = np.asarray(entry['additive'], dtype=float)

            if kind == 'continuous':
                edges = np.asarray(entry['binEdge'], dtype=float)
                upper_edge = float(edges[-1]) if len(edges) > len(scores) else np.inf
                features.append(ContinuousFeature(
                    index=index,
                    name=entry['name'],
                    bin_edges=edges[:len(scores)],
                    upper_edge=upper_edge,
                    scores=scores,
                    config=config
                ))
            elif kind == 'categorical':
                encoder = label_encoder.get(entry['name'], {})
                features.append(CategoricalFeature(
                    index=index,
                    name=entry['name'],
                    levels=np.asarray(entry['binLabel'], dtype=int),
                    scores=scores,
                    labels={int(code): label for code, label in encoder.items()},
                    config=config
                ))
            else:
                raise ValueError(f"Unknown feature type '{kind}' for feature '{entry['name']}'")

        interactions = []
        for entry in raw_interactions:
            first, second = (int(i) for i in entry['id'])
            scores = np.asarray(entry['additive'], dtype=float)
            is_cont = (features[first].is_continuous, features[second].is_continuous)
            axes = []
            for axis, key in enumerate(('binLabel1', 'binLabel2')):
                labels = np.asarray(entry[key], dtype=float if is_cont[axis] else int)
                axes.append(labels[:scores.shape[axis]])
            interactions.append(InteractionTerm(
                index=len(interactions),
                name=entry['name'],
                feature_indexes=(first, second),
                axes=(axes[0], axes[1]),
                continuous_axes=is_cont,
                scores=scores
            ))

        return cls(
            features=features,
            interactions=interactions,
            intercept=float(model.get('intercept', 0.0)),
            is_classifier=bool(model.get('isClassifier', True)),
            model_info=model.get('modelInfo', {}),
            cont_mads=dict(model.get('contMads') or {}),
            cat_distances=dict(model.get('catDistances') or {}),
            raw=model
        )


def load_model_description(path: Union[str, Path]) -> ModelDescription:
    """Loads and decodes a model description JSON file."""
    with open(path, 'r') as f:
        return ModelDescription.from_dict(json.load(f))
