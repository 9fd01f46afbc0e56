"""
GP training datasets: sampling, containers, pooling and persistence.

Modules:
    sampling: Deterministic evenly spaced sub-sampling of trajectories
    types: GPDataset, PooledDataset, pool_datasets
    io: NPZ / MAT storage with a JSON metadata sidecar
"""

from gpdata.datasets.io import (
    dataset_record,
    load_gp_dataset,
    load_metadata,
    pooled_record,
    save_gp_data,
)
from gpdata.datasets.sampling import sample_indices, sample_trajectory
from gpdata.datasets.types import GPDataset, PooledDataset, pool_datasets

__all__ = [
    # Sampling
    "sample_indices",
    "sample_trajectory",
    # Types
    "GPDataset",
    "PooledDataset",
    "pool_datasets",
    # I/O
    "dataset_record",
    "pooled_record",
    "save_gp_data",
    "load_gp_dataset",
    "load_metadata",
]
