"""
Visualization of generated GP datasets.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Mapping, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from gpdata.datasets.types import GPDataset


def plot_gp_datasets(
    datasets: Mapping[str, GPDataset],
    title: str = "Trajectory Data",
) -> plt.Figure:
    """
    Plot estimated trajectories in 3D with their sampled training inputs.

    Each dataset's full estimated path is drawn as a line, the training
    inputs as markers on top of it, and the training velocities as short
    arrows (linear part of the noisy twist).

    Args:
        datasets: Mapping label -> GPDataset (e.g. 'dataset_1', 'dataset_2').
        title: Plot title.

    Returns:
        fig: Matplotlib figure
    """
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    colors = ["tab:blue", "tab:red", "tab:green", "tab:orange", "tab:purple"]

    for i, (label, ds) in enumerate(datasets.items()):
        color = colors[i % len(colors)]
        ax.plot(
            ds.X_full[:, 0],
            ds.X_full[:, 1],
            ds.X_full[:, 2],
            "-",
            color=color,
            linewidth=1.0,
            alpha=0.6,
            label=f"{label} ({ds.name})",
        )
        ax.scatter(
            ds.X[:, 0],
            ds.X[:, 1],
            ds.X[:, 2],
            color=color,
            s=20,
            label=f"{label} samples (M={ds.n_samples})",
        )
        V = ds.training_outputs[:, :3]
        ax.quiver(
            ds.X[:, 0],
            ds.X[:, 1],
            ds.X[:, 2],
            V[:, 0],
            V[:, 1],
            V[:, 2],
            length=0.2,
            color=color,
            alpha=0.8,
        )

    ax.set_xlabel("X (m)", fontsize=12)
    ax.set_ylabel("Y (m)", fontsize=12)
    ax.set_zlabel("Z (m)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=9)

    plt.tight_layout()
    return fig


def plot_likelihood_history(
    histories: Mapping[str, List[np.ndarray]],
    title: str = "Log Marginal Likelihood",
) -> plt.Figure:
    """
    Plot running-best log marginal likelihood per fit and channel.

    Args:
        histories: Mapping label -> HyperparameterFit.history.
        title: Plot title.

    Returns:
        fig: Matplotlib figure
    """
    n = max(len(histories), 1)
    fig, axes = plt.subplots(1, n, figsize=(5 * n, 4), squeeze=False)

    for ax, (label, history) in zip(axes[0], histories.items()):
        for c, values in enumerate(history):
            ax.plot(np.arange(len(values)), values, linewidth=1.2, label=f"group {c}")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("log p(Y | X)")
        ax.set_title(label)
        ax.grid(True, alpha=0.3)
        ax.legend(fontsize=8)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("png",),
) -> List[Path]:
    """
    Save figure in one or more formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
