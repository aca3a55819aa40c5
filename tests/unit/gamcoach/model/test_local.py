# tests/unit/gamcoach/model/test_local.py
"""
Unit tests for the LocalScoringModel.
"""
import unittest
from pathlib import Path
import sys

# Add project root to path to import gamcoach modules
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent.parent))

from gamcoach.model import LocalScoringModel, ScoringModel
from tests.fixtures import CLASSIFIER_SAMPLE, classifier_model


class TestLocalScoringModel(unittest.TestCase):
    """Test cases for incremental updates of a single sample."""

    def setUp(self):
        self.scoring = ScoringModel(classifier_model())
        self.local = LocalScoringModel(self.scoring, CLASSIFIER_SAMPLE)

    def test_initial_prediction(self):
        self.assertAlmostEqual(self.local.pred_score, -2.05)
        self.assertEqual(self.local.pred, 0)
        self.assertLess(self.local.pred_prob, 0.5)

    def test_update_matches_full_rescoring(self):
        """Changing features one at a time matches scoring the final sample from scratch."""
        self.local.update_feature('age', 30)
        self.assertAlmostEqual(self.local.pred_score, self.scoring.score([30, 50, 'red'])[0])
        self.assertAlmostEqual(self.local.contributions['age x income'], -0.2)

        self.local.update_feature('income', 100)
        self.assertAlmostEqual(self.local.pred_score, 0.05)
        self.assertEqual(self.local.pred, 1)

        self.local.update_feature('color', 'green')
        expected = self.scoring.count_score([30, 100, 'green'])[0]
        for name, value in expected.items():
            self.assertAlmostEqual(self.local.contributions[name], value)
        self.assertEqual(self.local.sample, [30, 100, 'green'])

    def test_update_does_not_change_original_sample(self):
        sample = list(CLASSIFIER_SAMPLE)
        local = LocalScoringModel(self.scoring, sample)
        local.update_feature('age', 20)
        self.assertEqual(sample, CLASSIFIER_SAMPLE)

    def test_unknown_feature(self):
        with self.assertRaises(KeyError):
            self.local.update_feature('height', 3)


if __name__ == '__main__':
    unittest.main()
