# tests/unit/gamcoach/counterfactual/test_constraints.py
"""
Unit tests for the Constraints derived from feature configurations.
"""
import unittest
from pathlib import Path
import sys

# Add project root to path to import gamcoach modules
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent.parent))

from gamcoach.counterfactual.constraints import Constraints, continuous_integer_features
from gamcoach.model import ModelDescription
from tests.fixtures import CLASSIFIER_SAMPLE, classifier_model


class TestConstraints(unittest.TestCase):
    """Test cases for reading and editing constraints."""

    def setUp(self):
        self.model = ModelDescription.from_dict(classifier_model())
        self.constraints = Constraints(self.model, CLASSIFIER_SAMPLE)

    def test_predefined_constraints(self):
        self.assertEqual(self.constraints.difficulties, {'age': 'hard', 'color': 'lock'})
        # age requires increasing: from its current value up to the last edge.
        self.assertEqual(self.constraints.acceptable_ranges, {'age': [5, 40.0]})

    def test_derived_search_arguments(self):
        self.assertEqual(self.constraints.features_to_vary, ['age', 'income'])
        self.assertEqual(self.constraints.feature_weight_multipliers, {'age': 2})
        self.assertEqual(continuous_integer_features(self.model), ['income'])

        config = self.constraints.to_constraint_config([0.5, None])
        self.assertEqual(config.features_to_vary, ['age', 'income'])
        self.assertEqual(config.feature_ranges, {'age': [5, 40.0]})
        self.assertEqual(config.max_num_features_to_vary, 4)
        self.assertEqual(config.continuous_integer_features, ['income'])
        self.assertEqual(config.target_range, [0.5, None])

    def test_requires_decreasing(self):
        raw = classifier_model()
        raw['features'][1]['config']['requiresDecreasing'] = True
        constraints = Constraints(ModelDescription.from_dict(raw), CLASSIFIER_SAMPLE)
        self.assertEqual(constraints.acceptable_ranges['income'], [0.0, 50])

    def test_explicit_range_wins(self):
        raw = classifier_model()
        raw['features'][0]['config']['acceptableRange'] = [10, 20]
        constraints = Constraints(ModelDescription.from_dict(raw), CLASSIFIER_SAMPLE)
        self.assertEqual(constraints.acceptable_ranges['age'], [10, 20])

    def test_edits(self):
        self.constraints.set_difficulty('color', 'easy')
        self.constraints.set_difficulty('age', 'neutral')
        self.assertEqual(self.constraints.difficulties, {'color': 'easy'})
        self.assertIsNone(self.constraints.features_to_vary)
        self.assertEqual(self.constraints.feature_weight_multipliers, {'color': 0.5})

        self.constraints.set_acceptable_range('color', ['green'])
        self.constraints.set_acceptable_range('age', None)
        self.assertEqual(self.constraints.feature_ranges, {'color': ['green']})

        with self.assertRaises(ValueError):
            self.constraints.set_difficulty('age', 'impossible')
        with self.assertRaises(KeyError):
            self.constraints.set_acceptable_range('height', [0, 1])

    def test_to_dict(self):
        record = self.constraints.to_dict()
        self.assertEqual(record['allFeatureNames'], ['age', 'income', 'color'])
        self.assertEqual(record['maxNumFeaturesToVary'], 4)
        self.assertEqual(record['difficulties']['color'], 'lock')


if __name__ == '__main__':
    unittest.main()
