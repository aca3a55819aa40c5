#!/usr/bin/env python
"""
Computes the distance tables of a model from its training data.

The median absolute deviation of every continuous feature and the level
distances of every categorical feature are written into the model
description, where the counterfactual search reads them.
"""
import argparse
import sys
from pathlib import Path

# Add the project's root directory to the system path to allow importing from 'gamcoach'.
sys.path.append(str(Path(__file__).parent.parent))

from gamcoach.data.distances import update_model_file


def main():
    parser = argparse.ArgumentParser(description='Add distance tables to a model description.')
    parser.add_argument('--model', type=str, required=True, help='Path to the model description JSON.')
    parser.add_argument('--data', type=str, required=True, help='Path to the training data CSV.')
    parser.add_argument('--output', type=str, default=None,
                        help='Where to write the updated model (default: overwrite --model).')
    args = parser.parse_args()

    output_path = update_model_file(args.model, args.data, args.output)
    print(f"✓ Distance tables written to {output_path}")


if __name__ == '__main__':
    main()
