# tests/fixtures.py
"""
Shared fixtures for the test suite.

Provides small model descriptions whose scores can be computed by hand, and
a brute-force solver implementing the solver contract so that the search can
be tested without a MIP backend.
"""
import copy
import itertools
import os

from gamcoach.counterfactual.solver import SolverResult

SKIP_SOLVER_TESTS = os.environ.get('GAMCOACH_SKIP_SOLVER_TESTS') == '1'

# Binary classifier with two continuous features, one categorical feature and
# one interaction between the continuous features.
#   sample [5, 50, 'red'] scores -1.0 - 0.4 - 0.3 + 0.1 - 0.45 = -2.05
CLASSIFIER_MODEL = {
    'featureNames': ['age', 'income', 'color', 'age x income'],
    'featureTypes': ['continuous', 'continuous', 'categorical', 'interaction'],
    'features': [
        {
            'name': 'age',
            'type': 'continuous',
            'binEdge': [0, 10, 20, 30, 40],
            'additive': [-1.0, -0.5, 0.5, 1.0],
            'config': {'difficulty': 4, 'requiresIncreasing': True, 'acceptableRange': None}
        },
        {
            'name': 'income',
            'type': 'continuous',
            'binEdge': [0, 100, 200, 300],
            'additive': [-0.4, 0.0, 0.6],
            'config': {'difficulty': 3, 'requiresInt': True, 'usesTransform': None, 'acceptableRange': None}
        },
        {
            'name': 'color',
            'type': 'categorical',
            'binLabel': [1, 2, 3],
            'additive': [-0.3, 0.2, 0.1],
            'config': {'difficulty': 6, 'acceptableRange': None}
        },
        {
            'name': 'age x income',
            'type': 'interaction',
            'id': [0, 1],
            'binLabel1': [0, 20, 40],
            'binLabel2': [0, 150, 300],
            'additive': [[0.1, -0.1], [-0.2, 0.2]]
        }
    ],
    'labelEncoder': {'color': {'1': 'red', '2': 'green', '3': 'blue'}},
    'intercept': -0.45,
    'isClassifier': True,
    'modelInfo': {'classes': ['rejected', 'approved']},
    'contMads': {'age': 5.0, 'income': 40.0},
    'catDistances': {'color': {'red': 0.5, 'green': 0.6, 'blue': 0.9}}
}
CLASSIFIER_SAMPLE = [5, 50, 'red']

# Regressor with two continuous features and no distance tables.
#   sample [1, 0.5] scores 5.0
REGRESSOR_MODEL = {
    'featureNames': ['x', 'y'],
    'featureTypes': ['continuous', 'continuous'],
    'features': [
        {'name': 'x', 'type': 'continuous', 'binEdge': [0, 5, 10, 15, 20], 'additive': [0.0, 2.0, 4.0, 8.0]},
        {'name': 'y', 'type': 'continuous', 'binEdge': [0, 1, 2, 3], 'additive': [0.0, 1.5, 3.0]}
    ],
    'labelEncoder': {},
    'intercept': 5.0,
    'isClassifier': False,
    'modelInfo': {'regressionName': 'outcome'}
}
REGRESSOR_SAMPLE = [1, 0.5]

# Regressor with a single feature: every solution changes the same feature.
#   sample [0.5] scores 0.0
SINGLE_FEATURE_MODEL = {
    'featureNames': ['hours'],
    'featureTypes': ['continuous'],
    'features': [
        {'name': 'hours', 'type': 'continuous', 'binEdge': [0, 1, 2, 3, 4], 'additive': [0.0, 5.0, 6.0, 7.0]}
    ],
    'labelEncoder': {},
    'intercept': 0.0,
    'isClassifier': False,
    'modelInfo': {'regressionName': 'outcome'}
}
SINGLE_FEATURE_SAMPLE = [0.5]


# Classifier with a single feature whose bins lower the log-odds.
#   sample [5] scores 1.0 (class 1); moving to bin 1 gains exactly -1.0
POSITIVE_CLASSIFIER_MODEL = {
    'featureNames': ['debt'],
    'featureTypes': ['continuous'],
    'features': [
        {'name': 'debt', 'type': 'continuous', 'binEdge': [0, 10, 20, 30], 'additive': [0.0, -1.0, -2.0]}
    ],
    'labelEncoder': {},
    'intercept': 1.0,
    'isClassifier': True,
    'modelInfo': {'classes': ['rejected', 'approved']}
}
POSITIVE_CLASSIFIER_SAMPLE = [5]


def positive_classifier_model(intercept=1.0):
    model = copy.deepcopy(POSITIVE_CLASSIFIER_MODEL)
    model['intercept'] = intercept
    return model


def classifier_model():
    return copy.deepcopy(CLASSIFIER_MODEL)


def regressor_model():
    return copy.deepcopy(REGRESSOR_MODEL)


def single_feature_model():
    return copy.deepcopy(SINGLE_FEATURE_MODEL)


def _satisfies(value, bounds, tolerance=1e-9):
    kind = bounds['type']
    if kind == 'upper':
        return value <= bounds['ub'] + tolerance
    if kind == 'lower':
        return value >= bounds['lb'] - tolerance
    if kind == 'fixed':
        return abs(value - bounds['lb']) <= tolerance
    return bounds['lb'] - tolerance <= value <= bounds['ub'] + tolerance


class BruteForceSolver:
    """
    Solves small problem records by enumerating every binary assignment.

    Continuous auxiliaries are set to the AND of the binaries they are
    linked to, which is their only feasible value.
    """

    def __init__(self):
        self.calls = 0

    def solve(self, problem):
        self.calls += 1
        record = problem.to_dict() if hasattr(problem, 'to_dict') else problem
        binaries = list(record['binaries'])
        if not binaries:
            return SolverResult(status='infeasible')
        auxiliaries = [b['name'] for b in record['bounds']]

        # Each auxiliary appears in an 'x1 + x2 - z <= 1' constraint.
        parents = {}
        for constraint in record['subjectTo']:
            negatives = [t['name'] for t in constraint['vars'] if t['coef'] < 0]
            positives = [t['name'] for t in constraint['vars'] if t['coef'] > 0]
            if len(negatives) == 1 and negatives[0] in auxiliaries and len(positives) == 2:
                parents[negatives[0]] = positives

        best = None
        for values in itertools.product([0, 1], repeat=len(binaries)):
            assignment = dict(zip(binaries, values))
            for name in auxiliaries:
                first, second = parents[name]
                assignment[name] = assignment[first] * assignment[second]

            feasible = all(
                _satisfies(sum(t['coef'] * assignment[t['name']] for t in c['vars']), c['bounds'])
                for c in record['subjectTo']
            )
            if not feasible:
                continue
            objective = sum(t['coef'] * assignment[t['name']] for t in record['objective']['vars'])
            if best is None or objective < best[0] - 1e-12:
                best = (objective, assignment)

        if best is None:
            return SolverResult(status='infeasible')
        return SolverResult(status='optimal', variable_assignment=best[1], objective_value=best[0])
