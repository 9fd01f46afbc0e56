"""Saving and loading generated GP datasets.

Creates directory structure:
    output_dir/
    ├── GP_1.npz (or .mat)     # dataset of the first trajectory
    ├── GP_2.npz (or .mat)     # dataset of the second trajectory
    ├── GP_full.npz (or .mat)  # pooled dataset
    └── metadata.json          # configuration, seed, fitted hyperparameters

NPZ files are written with NumPy; MAT files with ``scipy.io.savemat`` so the
datasets can be loaded directly by MATLAB-based controllers.

Author: Navigation Engineer
Date: October 2026
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
from scipy.io import loadmat, savemat

from gpdata.datasets.types import GPDataset, PooledDataset
from gpdata.gp.types import GPHyperparameters


SUPPORTED_FORMATS = ("npz", "mat")

FILE_STEMS = {
    "dataset_1": "GP_1",
    "dataset_2": "GP_2",
    "dataset_pooled": "GP_full",
}


def dataset_record(dataset: GPDataset) -> Dict[str, np.ndarray]:
    """
    Flatten a fitted dataset into named arrays.

    Keys: X, X_full, Y_noisy, Y_clean, Y_full, times, indices, noise_level
    and, if fitted, length_scales, signal_variance, noise_variance, active, hyp.

    Args:
        dataset: Dataset with noisy outputs attached.

    Returns:
        Dictionary of arrays.
    """
    record = {
        "X": dataset.X,
        "X_full": dataset.X_full,
        "Y_noisy": dataset.training_outputs,
        "Y_clean": dataset.Y,
        "Y_full": dataset.Y_full,
        "times": dataset.times,
        "indices": dataset.indices,
        "noise_level": dataset.noise_level,
    }
    record.update(_hyperparameter_record(dataset.hyperparameters))
    return record


def pooled_record(pooled: PooledDataset) -> Dict[str, np.ndarray]:
    """
    Flatten a pooled dataset into named arrays.

    Keys: X_pooled, Y_pooled, noise_pooled, counts and, if fitted,
    length_scales, signal_variance, noise_variance, active, hyp.
    """
    record = {
        "X_pooled": pooled.X,
        "Y_pooled": pooled.Y,
        "noise_pooled": pooled.noise_level,
        "counts": np.asarray(pooled.counts, dtype=int),
    }
    record.update(_hyperparameter_record(pooled.hyperparameters))
    return record


def _hyperparameter_record(hyp: Optional[GPHyperparameters]) -> Dict[str, np.ndarray]:
    if hyp is None:
        return {}
    return {
        "length_scales": hyp.length_scales,
        "signal_variance": hyp.signal_variance,
        "noise_variance": hyp.noise_variance,
        "active": np.asarray(hyp.active, dtype=int),
        "hyp": hyp.to_log_matrix(),
    }


def hyperparameters_to_dict(hyp: Optional[GPHyperparameters]) -> Optional[Dict[str, Any]]:
    """JSON-friendly view of fitted hyperparameters."""
    if hyp is None:
        return None
    return {
        "covariance": hyp.covariance,
        "mode": hyp.mode,
        "length_scales": hyp.length_scales.tolist(),
        "signal_variance": hyp.signal_variance.tolist(),
        "noise_variance": hyp.noise_variance.tolist(),
        "active": hyp.active.tolist(),
    }


def save_gp_data(
    results: Mapping[str, Union[GPDataset, PooledDataset]],
    output_dir: Union[str, Path],
    format: str = "npz",
    metadata: Optional[Dict[str, Any]] = None,
) -> List[Path]:
    """
    Save generated datasets to disk.

    Args:
        results: Mapping with keys "dataset_1", "dataset_2" (GPDataset) and
                 "dataset_pooled" (PooledDataset), as returned by
                 generate_datasets(). Unknown keys are rejected.
        output_dir: Destination directory (created if missing).
        format: 'npz' (default) or 'mat'.
        metadata: Extra JSON-serializable information (e.g. configuration)
                  stored in metadata.json next to the hyperparameters.

    Returns:
        Paths of the files written (datasets first, metadata.json last).

    Raises:
        ValueError: If the format or a result key is not supported.

    Examples:
        >>> paths = save_gp_data(results, 'data/gp')  # doctest: +SKIP
        >>> [p.name for p in paths]  # doctest: +SKIP
        ['GP_1.npz', 'GP_2.npz', 'GP_full.npz', 'metadata.json']
    """
    if format not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported format: {format}. Use one of {SUPPORTED_FORMATS}.")
    unknown = set(results) - set(FILE_STEMS)
    if unknown:
        raise ValueError(f"Unknown result keys: {sorted(unknown)}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    summary: Dict[str, Any] = {}
    for key, stem in FILE_STEMS.items():
        if key not in results:
            continue
        item = results[key]
        if isinstance(item, PooledDataset):
            record = pooled_record(item)
            summary[key] = {
                "file": f"{stem}.{format}",
                "sources": list(item.sources),
                "n_samples": item.n_samples,
                "hyperparameters": hyperparameters_to_dict(item.hyperparameters),
            }
        else:
            record = dataset_record(item)
            summary[key] = {
                "file": f"{stem}.{format}",
                "name": item.name,
                "n_samples": item.n_samples,
                "hyperparameters": hyperparameters_to_dict(item.hyperparameters),
            }

        path = output_dir / f"{stem}.{format}"
        if format == "npz":
            np.savez(path, **record)
        else:
            savemat(str(path), record)
        written.append(path)

    meta = dict(metadata or {})
    meta["datasets"] = summary
    meta_path = output_dir / "metadata.json"
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2)
    written.append(meta_path)

    return written


def load_gp_dataset(path: Union[str, Path]) -> Dict[str, np.ndarray]:
    """
    Load one saved dataset file.

    Args:
        path: Path to a .npz or .mat file written by save_gp_data().

    Returns:
        Dictionary of arrays keyed as in dataset_record() / pooled_record().

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the extension is not supported.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")

    suffix = path.suffix.lstrip(".")
    if suffix == "npz":
        with np.load(path) as data:
            return {key: data[key] for key in data.files}
    if suffix == "mat":
        data = loadmat(str(path))
        return {key: value for key, value in data.items() if not key.startswith("__")}
    raise ValueError(f"Unsupported file type: {path.suffix}. Use .npz or .mat.")


def load_metadata(output_dir: Union[str, Path]) -> Dict[str, Any]:
    """Read metadata.json from an output directory."""
    meta_path = Path(output_dir) / "metadata.json"
    if not meta_path.exists():
        raise FileNotFoundError(f"Required file not found: {meta_path}")
    with open(meta_path, "r", encoding="utf-8") as f:
        return json.load(f)
