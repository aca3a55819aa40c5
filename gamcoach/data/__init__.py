# gamcoach/data/__init__.py
"""Distance tables computed from training data"""

from .distances import compute_cont_mads, compute_cat_distances, attach_distance_tables

__all__ = ['compute_cont_mads', 'compute_cat_distances', 'attach_distance_tables']
