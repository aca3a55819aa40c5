# gamcoach/model/local.py
"""Scoring model bound to a single sample with incremental updates."""
from typing import Any, Dict, List, Sequence

from .scoring import ScoringModel, sigmoid


class LocalScoringModel:
    """
    Caches the contributions of one sample so that changing a single feature
    only recomputes the terms that depend on it.
    """

    def __init__(self, scoring_model: ScoringModel, sample: Sequence[Any]):
        self.scoring_model = scoring_model
        self.sample: List[Any] = list(sample)
        self.encoded_sample: List[float] = scoring_model.encode_sample(self.sample)
        self.contributions: Dict[str, float] = scoring_model.score_encoded(self.encoded_sample)

        self._feature_positions = {name: i for i, name in enumerate(scoring_model.feature_names)}
        self._touching_interactions = {
            f.index: scoring_model.model.interactions_of(f.index) for f in scoring_model.features
        }
        self._refresh_prediction()

    def _refresh_prediction(self):
        self.pred_score = sum(self.contributions.values()) + self.scoring_model.intercept
        if self.scoring_model.is_classifier:
            self.pred_prob = float(sigmoid(self.pred_score))
            self.pred = int(self.pred_prob >= 0.5)
        else:
            self.pred_prob = self.pred_score
            self.pred = self.pred_score

    def update_feature(self, name: str, value: Any):
        """
        Changes one feature of the bound sample and refreshes the prediction.

        Args:
            name: Name of the feature to change.
            value: The new raw value (label for categorical features).
        """
        if name not in self._feature_positions:
            raise KeyError(f"Unknown feature '{name}'")
        index = self._feature_positions[name]
        feature = self.scoring_model.features[index]

        self.sample[index] = value
        self.encoded_sample[index] = self.scoring_model.encode_value(feature, value)
        self.contributions[name] = self.scoring_model.main_score(
            feature, self.scoring_model.main_bin(feature, self.encoded_sample[index])
        )
        for term in self._touching_interactions[index]:
            self.contributions[term.name] = self.scoring_model.interaction_score(term, self.encoded_sample)

        self._refresh_prediction()
