"""Generate GP training datasets from Visual Motion Observer runs.

Simulates a static camera watching a target on two Van-der-Pol limit
cycles, estimates the target's relative pose and velocity with the Visual
Motion Observer, samples (position, velocity) pairs, adds sensor noise and
fits SEard hyperparameters to each dataset and to their union.

Creates:
    - GP_1.{npz,mat}     : dataset of trajectory 1 with fitted hyperparameters
    - GP_2.{npz,mat}     : dataset of trajectory 2 with fitted hyperparameters
    - GP_full.{npz,mat}  : pooled dataset with fitted hyperparameters
    - metadata.json      : configuration, seed and hyperparameter summary
    - config.json        : configuration (reloadable with --config)

Saves to: data/sim/gp_vmo/

Author: Navigation Engineer
Date: October 2026
"""

import argparse
import dataclasses
import sys
import time
from pathlib import Path

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gpdata.config import config_to_dict, default_config, load_config, save_config
from gpdata.datasets.io import save_gp_data
from gpdata.pipeline import generate_datasets


# ============================================================================
# PRESET CONFIGURATIONS
# ============================================================================

PRESETS = {
    'paper': {
        'description': 'Published settings: 1 ms step, per-channel fits with learned noise',
        'dt': 1e-3,
        'duration': 20.0,
        'mode': 'per_channel',
        'fixed_noise': False,
    },
    'quick': {
        'description': 'Coarse 10 ms step for fast iteration (same trajectories and windows)',
        'dt': 1e-2,
        'duration': 20.0,
        'mode': 'per_channel',
        'fixed_noise': False,
    },
    'shared': {
        'description': 'One hyperparameter set shared by all six velocity channels',
        'dt': 1e-3,
        'duration': 20.0,
        'mode': 'shared',
        'fixed_noise': False,
    },
}


# ============================================================================
# DATA GENERATION
# ============================================================================

def generate_dataset(
    config,
    output_dir: str = "data/sim/gp_vmo",
    file_format: str = "npz",
    plot: bool = False,
    progress: bool = False,
) -> None:
    """Generate and save the GP datasets.

    Args:
        config: GPDataConfig to run.
        output_dir: Output directory path.
        file_format: 'npz' or 'mat'.
        plot: Also save a 3D figure of the trajectories and samples.
        progress: Show progress bars for the observer simulations.
    """
    print(f"\n{'='*70}")
    print(f"Generating GP Datasets (Visual Motion Observer)")
    print(f"{'='*70}")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    # 1. Simulate and fit
    print(f"\n1. Simulating observer runs and fitting hyperparameters...")
    print(f"   Duration: {config.duration} s")
    print(f"   Time step: {config.dt} s")
    print(f"   Covariance: {config.covariance} ({config.hyperparameter_mode})")
    print(f"   Noise: {'learned' if config.learn_noise else 'fixed'}")
    print(f"   Seed: {config.seed}")
    for traj in config.trajectories:
        osc = traj.oscillator
        print(
            f"   {traj.name}: eta={osc.eta}, v={osc.v}, "
            f"window={traj.window} s, M={traj.sample_count}"
        )

    start = time.time()
    results = generate_datasets(config, progress=progress)
    elapsed = time.time() - start
    print(f"   Done in {elapsed:.1f} s")

    # 2. Save datasets
    print(f"\n2. Saving datasets ({file_format})...")
    metadata = {
        "dataset_info": {
            "description": "GP training data from Visual Motion Observer estimates",
            "seed": config.seed,
            "duration_sec": config.duration,
            "dt_sec": config.dt,
            "generation_time_sec": round(elapsed, 3),
        },
        "config": config_to_dict(config),
        "coordinate_frame": {
            "description": "World frame; camera optical axis is its z-axis",
            "twist_order": "[v; omega] in target body frame",
            "units": "meters, radians, seconds",
        },
    }
    paths = save_gp_data(results, output_path, format=file_format, metadata=metadata)
    for path in paths:
        print(f"   Saved: {path.name}")

    # 3. Save configuration
    print(f"\n3. Saving configuration...")
    save_config(config, output_path / "config.json")
    print(f"   Saved: config.json")

    if plot:
        print(f"\n4. Plotting trajectories...")
        from gpdata.eval.plots import plot_gp_datasets, save_figure

        fig = plot_gp_datasets(
            {key: results[key] for key in ("dataset_1", "dataset_2")}
        )
        for path in save_figure(fig, output_path, "trajectory_data"):
            print(f"   Saved: {path.name}")

    # Summary
    print(f"\n{'='*70}")
    print(f"Dataset generation complete!")
    print(f"{'='*70}")
    print(f"Output directory: {output_path.absolute()}")
    print(f"\nDataset statistics:")
    for key in ("dataset_1", "dataset_2", "dataset_pooled"):
        item = results[key]
        hyp = item.hyperparameters
        lml = np.sum(item.fit.log_likelihood)
        print(
            f"  {key:15s}: {item.n_samples:3d} samples, "
            f"log-lik {lml:10.2f}, "
            f"{int(np.sum(hyp.active))}/{hyp.n_groups} channels fitted, "
            f"median ell {np.median(hyp.length_scales[hyp.active]):.3g}, "
            f"median sf2 {np.median(hyp.signal_variance[hyp.active]):.3g}, "
            f"converged={item.fit.converged}"
        )
    print(f"\n")


# ============================================================================
# COMMAND-LINE INTERFACE
# ============================================================================

def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Generate GP training datasets from Visual Motion Observer runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate with the published settings
  python %(prog)s

  # Fast run with a coarse time step
  python %(prog)s --preset quick --output data/sim/gp_vmo_quick

  # Shared hyperparameters, MATLAB output
  python %(prog)s --preset shared --format mat

  # Custom configuration file
  python %(prog)s --config my_config.json --seed 7

Available presets: """ + ", ".join(PRESETS.keys())
    )

    parser.add_argument(
        '--preset',
        type=str,
        choices=PRESETS.keys(),
        help='Use preset configuration (overrides individual parameters)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='JSON configuration file (default: published settings)'
    )

    # Output
    parser.add_argument(
        '--output',
        type=str,
        default='data/sim/gp_vmo',
        help='Output directory (default: data/sim/gp_vmo)'
    )
    parser.add_argument(
        '--format',
        type=str,
        choices=['npz', 'mat'],
        default='npz',
        help='Dataset file format (default: npz)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=42,
        help='Random seed for the noise (default: 42)'
    )

    # Simulation parameters
    sim_group = parser.add_argument_group('Simulation Parameters')
    sim_group.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Simulation horizon in seconds (default: 20.0)'
    )
    sim_group.add_argument(
        '--dt',
        type=float,
        default=None,
        help='Simulation time step in seconds (default: 0.001)'
    )
    sim_group.add_argument(
        '--progress',
        action='store_true',
        help='Show progress bars for the observer simulations'
    )

    # Fit parameters
    fit_group = parser.add_argument_group('Hyperparameter Fit')
    fit_group.add_argument(
        '--mode',
        type=str,
        choices=['per_channel', 'shared'],
        default=None,
        help='Hyperparameters per velocity channel or shared (default: per_channel)'
    )
    fit_group.add_argument(
        '--fixed-noise',
        action='store_true',
        default=None,
        help='Keep the noise variance fixed at the configured noise level'
    )

    parser.add_argument(
        '--plot',
        action='store_true',
        help='Save a 3D plot of the trajectories and sampled points'
    )

    args = parser.parse_args()

    if args.config:
        config = load_config(args.config)
        print(f"\nLoaded configuration: {args.config}")
    else:
        config = default_config()

    overrides = {'seed': args.seed}

    if args.preset:
        preset_config = PRESETS[args.preset]
        print(f"\nUsing preset: '{args.preset}'")
        print(f"Description: {preset_config['description']}")
        overrides.update(
            dt=preset_config['dt'],
            duration=preset_config['duration'],
            hyperparameter_mode=preset_config['mode'],
            learn_noise=not preset_config['fixed_noise'],
        )

    # Explicit flags win over the preset
    if args.duration is not None:
        overrides['duration'] = args.duration
    if args.dt is not None:
        overrides['dt'] = args.dt
    if args.mode is not None:
        overrides['hyperparameter_mode'] = args.mode
    if args.fixed_noise:
        overrides['learn_noise'] = False

    duration = overrides.get('duration', config.duration)
    dt = overrides.get('dt', config.dt)
    if duration <= 0:
        parser.error("Duration must be positive")
    if dt <= 0 or dt > duration:
        parser.error("Time step must be positive and less than duration")

    try:
        config = dataclasses.replace(config, **overrides)
    except ValueError as exc:
        parser.error(str(exc))

    generate_dataset(
        config,
        output_dir=args.output,
        file_format=args.format,
        plot=args.plot,
        progress=args.progress,
    )


if __name__ == "__main__":
    main()
