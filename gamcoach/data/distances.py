# gamcoach/data/distances.py
"""
Distance tables computed from the training data of a model.

Continuous distances are normalized by the median absolute deviation (MAD)
of each feature. Moving a categorical feature to a level costs one minus the
share of training samples having that level, so rare levels are farther.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd


def compute_cont_mads(df: pd.DataFrame, continuous_features: List[str]) -> Dict[str, float]:
    """
    Median absolute deviation of every continuous feature.

    Args:
        df: Training data.
        continuous_features: Names of the continuous columns.

    Returns:
        A dictionary mapping feature name to its MAD.
    """
    mads = {}
    for name in continuous_features:
        values = df[name].dropna().astype(float)
        if values.empty:
            mads[name] = 0.0
            continue
        mads[name] = float((values - values.median()).abs().median())
    return mads


def compute_cat_distances(df: pd.DataFrame, categorical_features: List[str]) -> Dict[str, Dict[str, float]]:
    """
    Distance of moving to each level of every categorical feature.

    Args:
        df: Training data.
        categorical_features: Names of the categorical columns.

    Returns:
        A dictionary mapping feature name to {level label: distance}.
    """
    distances = {}
    for name in categorical_features:
        shares = df[name].dropna().astype(str).value_counts(normalize=True)
        distances[name] = {level: float(1 - share) for level, share in shares.items()}
    return distances


def attach_distance_tables(model: Dict[str, Any], df: pd.DataFrame) -> Dict[str, Any]:
    """
    Returns a copy of a raw model description with `contMads` and `catDistances` filled in.

    Only the main-effect features present in the DataFrame are considered.
    """
    continuous = [f['name'] for f in model['features'] if f['type'] == 'continuous' and f['name'] in df.columns]
    categorical = [f['name'] for f in model['features'] if f['type'] == 'categorical' and f['name'] in df.columns]

    missing = [f['name'] for f in model['features']
               if f['type'] != 'interaction' and f['name'] not in df.columns]
    if missing:
        print(f"Warning: {len(missing)} model features not found in the data: {missing}")

    updated = dict(model)
    updated['contMads'] = compute_cont_mads(df, continuous)
    updated['catDistances'] = compute_cat_distances(df, categorical)
    return updated


def update_model_file(model_path: Union[str, Path], data_path: Union[str, Path],
                      output_path: Optional[Union[str, Path]] = None) -> Path:
    """Computes the distance tables from a CSV file and writes them into the model JSON."""
    model_path = Path(model_path)
    with open(model_path, 'r') as f:
        model = json.load(f)
    df = pd.read_csv(data_path)

    updated = attach_distance_tables(model, df)
    output_path = Path(output_path) if output_path else model_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(updated, f)
    return output_path
