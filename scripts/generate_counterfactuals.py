#!/usr/bin/env python
"""
A command-line script for generating counterfactual plans.

This script loads a model description and the samples to explain, generates
a batch of diverse plans for each of them and saves the output in a
structured JSON format. Constraints come from the YAML configuration, or
from the feature configurations of the model when --model-constraints is set.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List

import pandas as pd

# Add the project's root directory to the system path to allow importing from 'gamcoach'.
sys.path.append(str(Path(__file__).parent.parent))

from gamcoach.config import Config
from gamcoach.counterfactual import Constraints, GAMCoach, PlanGenerator, TargetAlreadyReachedError
from gamcoach.model import load_model_description


def load_samples(path: str, feature_names: List[str]) -> List[List[Any]]:
    """
    Loads the samples to explain from a JSON or CSV file.

    A JSON file holds a list of samples (lists in feature order) or a single
    sample. A CSV file must contain a column for every feature.
    """
    if path.endswith('.csv'):
        df = pd.read_csv(path)
        missing = [n for n in feature_names if n not in df.columns]
        if missing:
            raise ValueError(f"Columns missing from {path}: {missing}")
        return df[feature_names].values.tolist()

    with open(path, 'r') as f:
        samples = json.load(f)
    if samples and not isinstance(samples[0], list):
        samples = [samples]
    return samples


def main():
    parser = argparse.ArgumentParser(description='Generate counterfactual plans for an additive model.')
    parser.add_argument('--config', type=str, default=None, help='Path to the YAML configuration file.')
    parser.add_argument('--model', type=str, default=None, help='Path to the model description (overrides config).')
    parser.add_argument('--samples', type=str, required=True, help='JSON or CSV file with the samples to explain.')
    parser.add_argument('--output', type=str, default=None, help='Output JSON file (default: <results_dir>/plans.json).')
    parser.add_argument('--total-plans', type=int, default=None, help='Number of plans per sample.')
    parser.add_argument('--target-range', type=float, nargs=2, default=None,
                        help='Desired [low high] score range for regression models.')
    parser.add_argument('--model-constraints', action='store_true',
                        help='Use the difficulties and ranges stored in the model description.')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output.')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = Config.from_yaml(args.config) if args.config else Config()
    if args.model:
        config.model_path = args.model
    if args.total_plans:
        config.plans.total_plans = args.total_plans
    if args.verbose:
        config.search.verbose = 1
    target_range = args.target_range or config.constraints.target_range

    print(f"Loading model from {config.model_path}...")
    model = load_model_description(config.model_path)
    samples = load_samples(args.samples, model.feature_names)
    print(f"Loaded {len(samples)} samples with {len(model.feature_names)} features")

    coach = GAMCoach(model, config=config)
    generator = PlanGenerator(coach, config.plans)

    outputs = []
    for i, sample in enumerate(samples):
        constraints = Constraints(model, sample, config.plans.default_max_num_features_to_vary) \
            if args.model_constraints else None
        try:
            batch = generator.generate(sample, constraints=constraints, target_range=target_range)
        except TargetAlreadyReachedError as e:
            print(f"Sample {i}: {e}")
            outputs.append({'sampleIndex': i, 'error': str(e)})
            continue

        print(f"Sample {i}: {len(batch.plans)} plans generated, {len(batch.failed_plan_indexes)} failed")
        record = batch.to_dict()
        record['sampleIndex'] = i
        outputs.append(record)

    output_path = Path(args.output) if args.output else Path(config.results_dir) / 'plans.json'
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(outputs, f, indent=2, default=str)
    print(f"✓ Plans saved to {output_path}")


if __name__ == '__main__':
    main()
