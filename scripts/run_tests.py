#!/usr/bin/env python
"""
A command-line test runner for the counterfactual coach.

Tests are discovered with Python's native unittest framework. The suite can
be restricted to one package area (model scoring, counterfactual search or
data utilities), to a single module, or to the tests that do not need a MIP
solver backend.
"""
import argparse
import os
import sys
import unittest
from pathlib import Path

# Adds the project root directory to the system path so that the test files can
# import the 'gamcoach' package without installing it.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(PROJECT_ROOT))

AREAS = {
    'all': PROJECT_ROOT / 'tests',
    'model': PROJECT_ROOT / 'tests' / 'unit' / 'gamcoach' / 'model',
    'counterfactual': PROJECT_ROOT / 'tests' / 'unit' / 'gamcoach' / 'counterfactual',
    'data': PROJECT_ROOT / 'tests' / 'unit' / 'gamcoach' / 'data',
}


def run_suite(suite: unittest.TestSuite, verbosity: int = 2) -> int:
    """
    Runs a test suite.

    Returns:
        int: 0 if every test passes, 1 otherwise.
    """
    result = unittest.TextTestRunner(verbosity=verbosity).run(suite)
    return 0 if result.wasSuccessful() else 1


def discover(area: str) -> unittest.TestSuite:
    """
    Discovers the tests of one area.

    Args:
        area (str): One of the keys of AREAS.

    Returns:
        unittest.TestSuite: Every 'test_*.py' module found under the area.
    """
    loader = unittest.TestLoader()
    return loader.discover(str(AREAS[area]), pattern='test_*.py', top_level_dir=str(PROJECT_ROOT))


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Run tests for the counterfactual coach.')
    parser.add_argument('--area', choices=sorted(AREAS), default='all', help='Run the tests of one area only.')
    parser.add_argument('--test', type=str,
                        help='Run a specific test module (e.g., tests.unit.gamcoach.model.test_scoring).')
    parser.add_argument('--no-solver', action='store_true',
                        help='Skip the tests that call the MIP solver.')
    parser.add_argument('--quiet', action='store_true', help='Only print the summary.')
    args = parser.parse_args()

    if args.no_solver:
        # Read by the solver-dependent test cases.
        os.environ['GAMCOACH_SKIP_SOLVER_TESTS'] = '1'

    if args.test:
        suite = unittest.TestLoader().loadTestsFromName(args.test)
    else:
        suite = discover(args.area)

    sys.exit(run_suite(suite, verbosity=1 if args.quiet else 2))
