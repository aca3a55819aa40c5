# gamcoach/model/scoring.py
"""
Scoring engine for additive, bin-based models.

The prediction of an additive model is the intercept plus one lookup-table
contribution per main-effect feature and per pairwise interaction. This
module decodes the model description and computes these contributions and
the resulting predictions for one or many samples.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .description import MainFeature, ModelDescription

logger = logging.getLogger(__name__)

# Level code assigned to categorical values missing from the label encoder.
UNSEEN_LEVEL_CODE = 0


def sigmoid(score: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Logistic function rounded to 5 decimals for numerical stability."""
    return np.round(1 / (1 + np.exp(-np.asarray(score, dtype=float))), 5)


class ScoringModel:
    """Computes per-term contributions and predictions of an additive model."""

    def __init__(self, model: Union[ModelDescription, Dict[str, Any]]):
        """
        Initializes the scoring model.

        Args:
            model: A decoded ModelDescription or the raw JSON record.
        """
        if not isinstance(model, ModelDescription):
            model = ModelDescription.from_dict(model)
        self.model = model
        self.features = model.features
        self.interactions = model.interactions
        self.intercept = model.intercept
        self.is_classifier = model.is_classifier

        # Bidirectional label encoder for categorical features.
        self.label_encoder: Dict[str, Dict[Any, int]] = {}
        self.label_decoder: Dict[str, Dict[int, Any]] = {}
        for feature in model.categorical_features:
            self.label_decoder[feature.name] = dict(feature.labels)
            self.label_encoder[feature.name] = {
                label: code for code, label in feature.labels.items()
            }

    @property
    def feature_names(self) -> List[str]:
        return self.model.feature_names

    def encode_value(self, feature: MainFeature, value: Any) -> float:
        """
        Converts a raw sample value to the numeric value used for bin lookup.

        Categorical labels are mapped to their level code. A label missing
        from the encoder is mapped to UNSEEN_LEVEL_CODE with a warning.
        """
        if feature.is_continuous:
            return float(value)

        encoder = self.label_encoder.get(feature.name, {})
        if value in encoder:
            return encoder[value]
        # Samples loaded from JSON or CSV may carry labels as strings.
        for label, code in encoder.items():
            if str(label) == str(value):
                return code
        logger.warning(
            f"Unseen level '{value}' for categorical feature '{feature.name}'. "
            f"It contributes 0 to the score."
        )
        return UNSEEN_LEVEL_CODE

    def encode_sample(self, sample: Sequence[Any]) -> List[float]:
        if len(sample) != len(self.features):
            raise ValueError(
                f"Sample has {len(sample)} values but the model has {len(self.features)} features."
            )
        return [self.encode_value(f, v) for f, v in zip(self.features, sample)]

    def main_bin(self, feature: MainFeature, encoded_value: float) -> Optional[int]:
        """Bin index of an encoded value; None for an unknown categorical level."""
        return feature.bin_of(encoded_value)

    def main_score(self, feature: MainFeature, bin_index: Optional[int]) -> float:
        if bin_index is None:
            return 0.0
        return float(feature.scores[bin_index])

    def interaction_score(self, term, encoded_sample: Sequence[float]) -> float:
        first, second = term.feature_indexes
        bin1 = term.bin_of(0, encoded_sample[first])
        bin2 = term.bin_of(1, encoded_sample[second])
        return term.score_at(bin1, bin2)

    def score_encoded(self, encoded_sample: Sequence[float]) -> Dict[str, float]:
        scores = {}
        for feature, value in zip(self.features, encoded_sample):
            scores[feature.name] = self.main_score(feature, self.main_bin(feature, value))
        for term in self.interactions:
            scores[term.name] = self.interaction_score(term, encoded_sample)
        return scores

    def as_sample_list(self, samples) -> List[Sequence[Any]]:
        if isinstance(samples, pd.DataFrame):
            return samples[self.feature_names].values.tolist()
        if isinstance(samples, pd.Series):
            return [samples[self.feature_names].tolist()]
        samples = list(samples)
        # A single flat sample is accepted as well as a batch.
        if samples and not isinstance(samples[0], (list, tuple, np.ndarray)):
            return [samples]
        return samples

    def count_score(self, samples) -> List[Dict[str, float]]:
        """
        Computes the contribution of every main effect and interaction term.

        Args:
            samples: A single sample, a list of samples or a DataFrame whose
                     columns include every feature name.

        Returns:
            One dictionary per sample mapping feature or interaction name to
            its contributed score.
        """
        return [self.score_encoded(self.encode_sample(s)) for s in self.as_sample_list(samples)]

    def score(self, samples) -> np.ndarray:
        """Raw additive score (log-odds for classifiers) of every sample."""
        return np.array([sum(c.values()) + self.intercept for c in self.count_score(samples)])

    def predict(self, samples, raw: bool = False) -> np.ndarray:
        """
        Predicts samples.

        Args:
            samples: A single sample, a list of samples or a DataFrame.
            raw: If True, classifiers return log-odds instead of labels.

        Returns:
            Class labels (0/1), log-odds, or regression scores.
        """
        scores = self.score(samples)
        if not self.is_classifier or raw:
            return scores
        return (sigmoid(scores) >= 0.5).astype(int)

    def predict_prob(self, samples) -> np.ndarray:
        """Probability of the positive class for classifiers, raw score for regressors."""
        scores = self.score(samples)
        if not self.is_classifier:
            return scores
        return sigmoid(scores)
