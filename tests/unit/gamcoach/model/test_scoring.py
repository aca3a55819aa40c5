# tests/unit/gamcoach/model/test_scoring.py
"""
Unit tests for the model description decoder and the ScoringModel.
"""
import unittest
from pathlib import Path
import sys

import numpy as np
import pandas as pd

# Add project root to path to import gamcoach modules
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent.parent))

from gamcoach.model.description import ModelDescription
from gamcoach.model.scoring import ScoringModel, sigmoid
from tests.fixtures import CLASSIFIER_SAMPLE, REGRESSOR_SAMPLE, classifier_model, regressor_model


class TestModelDescription(unittest.TestCase):
    """Test cases for decoding the raw model record."""

    def setUp(self):
        self.model = ModelDescription.from_dict(classifier_model())

    def test_continuous_feature_drops_trailing_edge(self):
        """Edges and scores must be parallel arrays; the last edge is kept as upper_edge."""
        age = self.model.feature('age')
        self.assertEqual(len(age.bin_edges), 4)
        self.assertEqual(age.upper_edge, 40.0)
        self.assertEqual(age.bin_range(0), (0.0, 10.0))
        self.assertEqual(age.bin_range(3), (30.0, 40.0))

    def test_categorical_feature_labels(self):
        color = self.model.feature('color')
        self.assertFalse(color.is_continuous)
        self.assertEqual(color.bin_of(2), 1)
        self.assertIsNone(color.bin_of(7))
        self.assertEqual(color.label_of(2), 'blue')

    def test_interaction_axes_are_truncated_to_grid(self):
        term = self.model.interactions[0]
        self.assertEqual(term.feature_indexes, (0, 1))
        self.assertEqual(len(term.axes[0]), 2)
        self.assertEqual(len(term.axes[1]), 2)
        self.assertEqual([t.name for t in self.model.interactions_of(1)], ['age x income'])
        self.assertEqual(self.model.interactions_of(2), [])

    def test_feature_configs_and_tables(self):
        self.assertEqual(self.model.feature('age').config.difficulty, 4)
        self.assertTrue(self.model.feature('age').config.requires_increasing)
        self.assertTrue(self.model.feature('income').config.requires_int)
        self.assertEqual(self.model.cont_mads['income'], 40.0)
        self.assertEqual(self.model.cat_distances['color']['blue'], 0.9)

    def test_unknown_feature(self):
        with self.assertRaises(KeyError):
            self.model.feature('height')

        raw = classifier_model()
        raw['features'][0]['type'] = 'ordinal'
        with self.assertRaises(ValueError):
            ModelDescription.from_dict(raw)


class TestScoringModel(unittest.TestCase):
    """Test cases for the additive scoring engine."""

    def setUp(self):
        self.scoring = ScoringModel(classifier_model())

    def test_count_score(self):
        """Every main effect and interaction contributes its bin score."""
        contributions = self.scoring.count_score(CLASSIFIER_SAMPLE)[0]
        self.assertAlmostEqual(contributions['age'], -1.0)
        self.assertAlmostEqual(contributions['income'], -0.4)
        self.assertAlmostEqual(contributions['color'], -0.3)
        self.assertAlmostEqual(contributions['age x income'], 0.1)

    def test_score_and_predictions(self):
        self.assertAlmostEqual(self.scoring.score(CLASSIFIER_SAMPLE)[0], -2.05)
        self.assertEqual(self.scoring.predict(CLASSIFIER_SAMPLE)[0], 0)
        self.assertAlmostEqual(self.scoring.predict(CLASSIFIER_SAMPLE, raw=True)[0], -2.05)
        self.assertAlmostEqual(self.scoring.predict_prob(CLASSIFIER_SAMPLE)[0], 1 / (1 + np.exp(2.05)), places=5)

        # age 30 and income 100 push the log-odds above zero.
        self.assertAlmostEqual(self.scoring.score([30, 100, 'red'])[0], 0.05)
        self.assertEqual(self.scoring.predict([30, 100, 'red'])[0], 1)

    def test_batch_and_dataframe_inputs(self):
        batch = [CLASSIFIER_SAMPLE, [30, 100, 'red']]
        np.testing.assert_allclose(self.scoring.score(batch), [-2.05, 0.05])

        df = pd.DataFrame(batch, columns=['age', 'income', 'color'])
        np.testing.assert_allclose(self.scoring.score(df), [-2.05, 0.05])

    def test_values_outside_edges_are_clamped(self):
        low = self.scoring.count_score([-50, 50, 'red'])[0]
        high = self.scoring.count_score([500, 50, 'red'])[0]
        self.assertAlmostEqual(low['age'], -1.0)
        self.assertAlmostEqual(high['age'], 1.0)

    def test_unseen_level_contributes_zero(self):
        with self.assertLogs('gamcoach.model.scoring', level='WARNING'):
            contributions = self.scoring.count_score([5, 50, 'purple'])[0]
        self.assertEqual(contributions['color'], 0.0)

    def test_sample_length_mismatch(self):
        with self.assertRaises(ValueError):
            self.scoring.score([5, 50])

    def test_regressor_returns_raw_scores(self):
        scoring = ScoringModel(regressor_model())
        self.assertAlmostEqual(scoring.predict(REGRESSOR_SAMPLE)[0], 5.0)
        self.assertAlmostEqual(scoring.predict_prob(REGRESSOR_SAMPLE)[0], 5.0)
        self.assertAlmostEqual(scoring.predict([10, 2])[0], 12.0)

    def test_sigmoid_is_rounded(self):
        self.assertEqual(sigmoid(0.0), 0.5)
        self.assertEqual(float(sigmoid(1.0)), round(1 / (1 + np.exp(-1.0)), 5))


if __name__ == '__main__':
    unittest.main()
